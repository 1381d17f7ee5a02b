from PIL import Image
import imagehash

HASH_SIZE = 8

PHASH_HEX_LEN = HASH_SIZE * HASH_SIZE // 4


def phash_hex(image: Image.Image) -> str:
    """
    64-bit DCT perceptual hash of `image` as 16 lowercase hex characters.
    Near-identical photos usually share a hash; distinct people can collide.
    """
    return str(imagehash.phash(image.convert('RGB'), hash_size=HASH_SIZE))


def hamming_distance(a: str, b: str) -> int:
    return imagehash.hex_to_hash(a) - imagehash.hex_to_hash(b)
