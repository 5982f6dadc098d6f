# -*- coding: utf-8 -*-

import gzip
import hashlib
import os
import shutil
import tempfile
from typing import List, NamedTuple, Optional

from docker_layer_digest.archive import CHUNK_SIZE, ArchiveReader
from docker_layer_digest.errors import (
    ArchiveError,
    DigestError,
    HashComputeError,
    LayerCompressError,
    LayerExtractError,
)
from docker_layer_digest.manifest import ExportManifest

DIGEST_PREFIX = "sha256:"


class GzipProfile(NamedTuple):
    """
    Compression parameters used to recreate the layer blob.

    Level 6 is the zlib default. The modification time is fixed and no file
    name is stored, so the gzip header does not depend on when or where the
    layer was compressed.
    """

    compresslevel: int = 6
    mtime: int = 0


def compress_file(src: str, dest: str, profile: Optional[GzipProfile] = None):
    """Compresses ``src`` into a single-member gzip file at ``dest``"""

    profile = profile or GzipProfile()

    try:
        with open(src, "rb") as f_in, open(dest, "wb") as f_out:
            # Passing the file name explicitly, otherwise it is taken from f_out
            with gzip.GzipFile(
                filename="",
                mode="wb",
                fileobj=f_out,
                compresslevel=profile.compresslevel,
                mtime=profile.mtime,
            ) as gz:
                shutil.copyfileobj(f_in, gz, CHUNK_SIZE)
    except OSError as e:
        raise LayerCompressError("Could not compress '%s' to '%s': %s" % (src, dest, e)) from e


def sha256_file(path: str) -> str:
    """Returns the hex encoded sha256 sum of the file, read in chunks"""

    sha = hashlib.sha256()

    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                sha.update(chunk)
    except OSError as e:
        raise HashComputeError("Could not hash '%s': %s" % (path, e)) from e

    return sha.hexdigest()


def format_digest(digest: str, prefix: bool = True) -> str:
    if prefix and not digest.startswith(DIGEST_PREFIX):
        return DIGEST_PREFIX + digest

    return digest


def strip_digest(digest: str) -> str:
    if digest.startswith(DIGEST_PREFIX):
        return digest[len(DIGEST_PREFIX) :]

    return digest


def compare_digests(layers: List[str], digests: List[str], expected: List[str]) -> List[str]:
    """Returns layers for which the computed digest differs from the expected one"""

    if len(expected) != len(layers):
        raise DigestError(
            "Expected %s digests, the image has %s layers" % (len(expected), len(layers))
        )

    return [
        layer
        for layer, digest, wanted in zip(layers, digests, expected)
        if digest != strip_digest(wanted).lower()
    ]


class LayerDigestPipeline(object):
    """
    Computes the digests a registry assigns to the layers of an exported image.

    A registry stores layers as gzip compressed blobs and digests the
    compressed bytes, not the tar files found in the ``docker save`` archive.
    Every layer is therefore extracted, compressed with the configured
    :class:`GzipProfile` and hashed.

    One extraction file and one compressed file are reused for all layers.
    Both live in a scratch directory owned by a single :meth:`compute` call,
    which is removed afterwards; layers are processed one after another.
    """

    EXTRACTED_FILE = "layer.tar"
    COMPRESSED_FILE = "layer.tar.gz"

    def __init__(
        self,
        log,
        tmp_dir: Optional[str] = None,
        profile: Optional[GzipProfile] = None,
    ):
        self.log = log
        self.tmp_dir: Optional[str] = tmp_dir
        self.profile: GzipProfile = profile or GzipProfile()

    def compute(self, manifest: ExportManifest, archive_path: str) -> List[str]:
        reader = ArchiveReader(self.log, archive_path)
        digests = []

        with tempfile.TemporaryDirectory(
            prefix="docker-layer-digest-", dir=self.tmp_dir or os.getcwd()
        ) as scratch_dir:
            extracted = os.path.join(scratch_dir, self.EXTRACTED_FILE)
            compressed = os.path.join(scratch_dir, self.COMPRESSED_FILE)

            for layer in manifest.layers:
                digests.append(
                    self._layer_digest(reader, layer, extracted, compressed)
                )

        return digests

    def _layer_digest(
        self, reader: ArchiveReader, layer: str, extracted: str, compressed: str
    ) -> str:
        self.log.debug("Extracting layer '%s'..." % layer)

        try:
            found = reader.read_entry_to_file(layer, extracted)
        except ArchiveError as e:
            raise LayerExtractError("Could not extract layer '%s': %s" % (layer, e)) from e

        if not found:
            raise LayerExtractError(
                "Layer '%s' listed in the manifest is missing in the archive" % layer
            )

        self.log.debug("Compressing layer '%s'..." % layer)
        compress_file(extracted, compressed, self.profile)

        digest = sha256_file(compressed)
        self.log.debug("Layer '%s' has digest %s" % (layer, digest))

        return digest
