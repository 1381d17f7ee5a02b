from dataclasses import dataclass
from functools import cache
from pathlib import Path
from typing import Literal
from PIL import Image
import logging
import os
import threading

import numpy as np
import onnxruntime as ort

from errors import ClassifierError

logger = logging.getLogger(__name__)

MODEL_PATH = Path(os.environ.get(
    'TX_FACE_GENDER_MODEL_PATH',
    str(Path(__file__).parent / 'model.onnx'),
))

FACE_DETECTION_THRESHOLD = float(os.environ.get(
    'TX_FACE_DETECTION_THRESHOLD',
    str(0.5),
))

_DEFAULT_IMAGE_SIZE = 224

_session_lock = threading.Lock()


@dataclass(frozen=True)
class FaceGender:
    gender: Literal['male', 'female']
    probability: float


@cache
def _load_session(model_path: Path) -> ort.InferenceSession:
    logger.info(f'loading face/gender model from {model_path}')
    return ort.InferenceSession(
        str(model_path),
        providers=['CPUExecutionProvider'],
    )


def load_models(model_path: Path = MODEL_PATH) -> ort.InferenceSession:
    """
    Create the inference session, once per model path. Raises
    ClassifierError if the model can't be loaded.
    """
    with _session_lock:
        try:
            return _load_session(model_path)
        except Exception as e:
            raise ClassifierError(f'loading {model_path}: {e}') from e


def pad_resize_image(image: Image.Image, target_size: int) -> Image.Image:
    """
    Pad the image and resize it to target size using bilinear interpolation.
    Parameters
    ----------
    image : Image.Image
        Image to be padded and resized
    target_size : int
        New size for the height/width of the image
    Returns
    -------
    resized_image : Image.Image
        Resized and padded image
    """
    old_size = image.size
    ratio = float(target_size) / max(old_size)
    new_size = tuple([max(1, int(x * ratio)) for x in old_size])
    image = image.resize(new_size, Image.BILINEAR)
    new_im = Image.new("RGB", (target_size, target_size))
    new_im.paste(image, ((target_size - new_size[0]) // 2, (target_size - new_size[1]) // 2))
    return new_im


def preprocess_for_evaluation(image: Image.Image, image_size: int) -> np.ndarray:
    """
    RGB image -> NCHW float32 batch of one, scaled to [-1, 1].
    """
    image = pad_resize_image(image.convert('RGB'), image_size)
    array = np.asarray(image, dtype=np.float32)
    array -= 128
    array /= 128
    array = np.transpose(array, (2, 0, 1))
    return np.expand_dims(array, axis=0)


def _input_size(session: ort.InferenceSession) -> int:
    shape = session.get_inputs()[0].shape
    if len(shape) == 4 and isinstance(shape[2], int):
        return shape[2]
    return _DEFAULT_IMAGE_SIZE


def detect_gender(
    image: Image.Image,
    session: ort.InferenceSession | None = None,
) -> FaceGender | None:
    """
    Run the face/gender model on `image`.

    The model is a black box with two outputs: a face score of shape [N, 1]
    and gender probabilities of shape [N, 2] ordered (female, male). Returns
    None when no face scores above FACE_DETECTION_THRESHOLD. Any inference
    failure is raised as ClassifierError.
    """
    try:
        session = session or load_models()
        batch = preprocess_for_evaluation(image, _input_size(session))
        face_scores, gender_probs = session.run(
            None, {session.get_inputs()[0].name: batch})[:2]
    except ClassifierError:
        raise
    except Exception as e:
        raise ClassifierError(f'face/gender inference failed: {e}') from e

    if float(face_scores[0][0]) < FACE_DETECTION_THRESHOLD:
        return None

    female, male = (float(p) for p in gender_probs[0][:2])

    if male >= female:
        return FaceGender(gender='male', probability=male)
    return FaceGender(gender='female', probability=female)


def male_probability(face_gender: FaceGender | None) -> float | None:
    if face_gender is None:
        return None
    if face_gender.gender == 'male':
        return face_gender.probability
    return 1 - face_gender.probability
