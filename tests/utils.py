import io
import json
import struct
import tarfile
import zlib
from typing import NamedTuple


class Link(NamedTuple):
    """Content of a link entry, pointing to ``target``"""

    target: str
    type: bytes = tarfile.SYMTYPE


def make_archive(path, entries, format=tarfile.PAX_FORMAT):
    """
    Writes a tar archive with (name, content) entries, in the given order.
    Content given as a :class:`Link` creates a symbolic or hard link.
    """

    with tarfile.open(path, "w", format=format) as tar:
        for name, content in entries:
            info = tarfile.TarInfo(name)
            info.mtime = 0

            if isinstance(content, Link):
                info.type = content.type
                info.linkname = content.target
                tar.addfile(info)
            else:
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))


def manifest_json(layers, config="c.json", repo_tags=("x:latest",)):
    return json.dumps(
        [{"Config": config, "RepoTags": list(repo_tags), "Layers": list(layers)}]
    ).encode("utf-8")


def image_archive(path, layers, manifest=None):
    """
    Writes a 'docker save' like archive: manifest first, then the layers,
    given as a {path: content} mapping.
    """

    if manifest is None:
        manifest = manifest_json(list(layers))

    entries = [("manifest.json", manifest), ("c.json", b"{}")]
    entries.extend(layers.items())

    make_archive(path, entries)


def reference_gzip(content, level=6):
    # Single gzip member assembled by hand: no file name, mtime 0, unknown OS
    compressor = zlib.compressobj(level, zlib.DEFLATED, -zlib.MAX_WBITS)
    body = compressor.compress(content) + compressor.flush()

    xfl = b"\x02" if level == 9 else b"\x04" if level == 1 else b"\x00"
    header = b"\x1f\x8b\x08\x00" + struct.pack("<I", 0) + xfl + b"\xff"
    trailer = struct.pack(
        "<II", zlib.crc32(content) & 0xFFFFFFFF, len(content) & 0xFFFFFFFF
    )

    return header + body + trailer


def member_offsets(path):
    """Returns {name: (header offset, data offset)} of the archive entries"""

    with tarfile.open(path, "r:") as tar:
        return {m.name: (m.offset, m.offset_data) for m in tar.getmembers()}


def truncate(path, size):
    with open(path, "r+b") as f:
        f.truncate(size)
