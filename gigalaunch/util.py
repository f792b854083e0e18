"""Global utilities used internally. The functions can be used externally but upward
compatibility is not guaranteed unless explicitly specified.
"""

from pathlib import Path
import platform
import re

from typing import Optional


jvm_bin_filename = "javaw.exe" if platform.system() == "Windows" else "java"

_sha1_re = re.compile(r"[0-9a-f]{40}")


def merge_dict(dst: dict, other: dict) -> None:
    """Merge a dictionary into a destination one.

    Merge the `other` dict into the `dst` dict. For every key/value in `other`, if the key
    is present in `dst`it does nothing. Unless values in both dict are also dict, in this
    case the merge is recursive. If the value in both dict are list, the `other` list is
    prepended to the `dst` one. If a key is present in both `dst` and `other` but with
    different types, the value is not overwritten.

    This is used to merge a version's metadata with the metadata of the version it
    inherits from, the child being `dst`.
    """

    for k, v in other.items():
        if k in dst:
            dst_v = dst[k]
            if isinstance(dst_v, dict) and isinstance(v, dict):
                merge_dict(dst_v, v)
            elif isinstance(dst_v, list) and isinstance(v, list):
                dst[k] = v + dst_v
        else:
            dst[k] = v


def calc_input_sha1(input_stream, *, buffer_len: int = 8192) -> str:
    """Internal function to calculate the sha1 of an input stream.

    :param input_stream: The input stream that supports `readinto`.
    :param buffer_len: Internal buffer length, defaults to 8192
    :return: The sha1 string.
    """
    import hashlib
    h = hashlib.sha1()
    b = bytearray(buffer_len)
    mv = memoryview(b)
    for n in iter(lambda: input_stream.readinto(mv), 0):
        h.update(mv[:n])
    return h.hexdigest()


def calc_file_sha1(file: Path) -> Optional[str]:
    """Calculate the sha1 of a file, none if the file can't be read.
    """
    try:
        with file.open("rb") as fp:
            return calc_input_sha1(fp)
    except OSError:
        return None


def is_sha1(value: str) -> bool:
    """Return true if the given value is a sha1 formatted as 40 lowercase hexadecimal
    characters, as used by assets indexes.
    """
    return _sha1_re.fullmatch(value) is not None


def sha1_prefix(value: str) -> str:
    """Return the two characters prefix of a sha1, used as directory name for assets.

    :raises ValueError: If the value is not a valid sha1, see `is_sha1`.
    """
    if not is_sha1(value):
        raise ValueError(f"invalid sha1: {value!r}")
    return value[:2]
