# -*- coding: utf-8 -*-

import logging
import os
import tempfile
from logging import Logger
from typing import Dict, List, Optional

from docker_layer_digest.archive import ArchiveReader
from docker_layer_digest.engine import DockerEngine
from docker_layer_digest.errors import DigestError
from docker_layer_digest.lib import common
from docker_layer_digest.manifest import (
    MANIFEST_FILE,
    ExportManifest,
    decode_manifests,
    select_manifest,
)
from docker_layer_digest.pipeline import GzipProfile, LayerDigestPipeline
from docker_layer_digest.version import version


class Converter(object):
    """
    Converts one image held by the Docker daemon (or an archive created with
    ``docker save``) into the list of layer digests a registry would report.
    """

    EXPORT_FILE = "image.tar"

    def __init__(
        self,
        log,
        image: Optional[str] = None,
        docker=None,
        input_tar: Optional[str] = None,
        tmp_dir: Optional[str] = None,
        output_path: Optional[str] = None,
        pull: bool = False,
        platform: Optional[str] = None,
        auth_config: Optional[Dict[str, str]] = None,
        profile: Optional[GzipProfile] = None,
    ):
        self.log: Logger = log
        self.docker = docker
        self.image: str = image
        self.input_tar: str = input_tar
        self.tmp_dir: str = tmp_dir
        self.output_path: str = output_path
        self.pull: bool = pull
        self.platform: str = platform
        self.auth_config: Dict[str, str] = auth_config
        self.profile: GzipProfile = profile or GzipProfile()
        self.manifest: Optional[ExportManifest] = None

    def run(self) -> List[str]:
        if self.image is None and self.input_tar is None:
            raise DigestError("Image is not provided")

        if self.image is not None and self.input_tar is not None:
            raise DigestError("Image and input tar cannot be used at the same time")

        if self.input_tar and (self.pull or self.output_path):
            self.log.warning(
                "Reading image from '%s', pulling and saving the image is skipped"
                % self.input_tar
            )

        # Scratch files of one run never outlive it
        with tempfile.TemporaryDirectory(
            prefix="docker-layer-digest-", dir=self.tmp_dir or os.getcwd()
        ) as work_dir:
            self.log.debug("Using %s as the temporary directory" % work_dir)

            if self.input_tar:
                archive_path = self.input_tar
            else:
                archive_path = self._export(work_dir)

            self.manifest = self._read_manifest(archive_path)
            self.log.info(
                "Image %s has %s layers"
                % (self.image or self.input_tar, len(self.manifest.layers))
            )

            digests = LayerDigestPipeline(self.log, work_dir, self.profile).compute(
                self.manifest, archive_path
            )

        self.log.info("Done")

        return digests

    def _export(self, work_dir: str) -> str:
        if not self.docker:
            self.docker = common.docker_client(self.log)

        engine = DockerEngine(self.log, self.docker)

        docker_version = engine.version()
        self.log.info(
            "docker-layer-digest version %s, Docker %s, API %s..."
            % (version, docker_version["Version"], docker_version["ApiVersion"])
        )

        if self.pull:
            engine.pull_image(self.image, self.platform, self.auth_config)

        archive_path = self.output_path or os.path.join(work_dir, self.EXPORT_FILE)

        if self.output_path and os.path.exists(self.output_path):
            self.log.warning(
                "Path '%s' specified as output path where the image should be saved already exists, it'll be overwritten"
                % self.output_path
            )

        engine.save_image(self.image, archive_path)

        return archive_path

    def _read_manifest(self, archive_path: str) -> ExportManifest:
        self.log.debug("Reading %s from '%s'..." % (MANIFEST_FILE, archive_path))

        data = ArchiveReader(self.log, archive_path).read_entry_to_memory(
            MANIFEST_FILE, required=True
        )

        manifests = decode_manifests(data)

        if len(manifests) > 1:
            self.log.warning(
                "Archive '%s' describes %s images, only the first one is used"
                % (archive_path, len(manifests))
            )

        return select_manifest(manifests)


def extract_registry_layer_digests(
    docker, image: str, tmp_dir: Optional[str] = None, log=None
) -> List[str]:
    """
    Returns registry digests (hex encoded, without the ``sha256:`` prefix) of
    the ``image`` layers, in the order of the image manifest.
    """

    if log is None:
        log = logging.getLogger(__name__)

    return Converter(log, image, docker=docker, tmp_dir=tmp_dir).run()
