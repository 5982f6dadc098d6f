# -*- coding: utf-8 -*-

import os
from typing import Dict, Optional

import docker.errors as docker_errors
import requests

from docker_layer_digest.errors import EngineCallError

ENGINE_ERRORS = (docker_errors.DockerException, requests.exceptions.RequestException)


class DockerEngine(object):
    """Thin wrapper over the calls made to the Docker daemon"""

    def __init__(self, log, docker):
        self.log = log
        self.docker = docker

    def version(self) -> Dict:
        try:
            return self.docker.version()
        except ENGINE_ERRORS as e:
            raise EngineCallError("Could not read Docker version: %s" % e) from e

    def pull_image(
        self,
        image: str,
        platform: Optional[str] = None,
        auth_config: Optional[Dict[str, str]] = None,
    ):
        self.log.info("Pulling image %s..." % image)

        try:
            for status in self.docker.pull(
                image,
                stream=True,
                decode=True,
                platform=platform,
                auth_config=auth_config,
            ):
                # The daemon reports some failures in the progress stream only
                if "error" in status:
                    raise EngineCallError(
                        "Could not pull image %s: %s" % (image, status["error"])
                    )

                self.log.debug(
                    " ".join(
                        str(status[key])
                        for key in ("id", "status", "progress")
                        if status.get(key)
                    )
                )
        except ENGINE_ERRORS as e:
            raise EngineCallError("Could not pull image %s: %s" % (image, e)) from e

        self.log.info("Image %s pulled!" % image)

    def save_image(self, image: str, target_path: str):
        """Saves the image as a tar archive under specified path"""

        self.log.info("Saving image %s to %s..." % (image, target_path))

        try:
            with open(target_path, "wb") as f:
                for chunk in self.docker.get_image(image):
                    f.write(chunk)
        except ENGINE_ERRORS as e:
            self._remove(target_path)
            raise EngineCallError("Couldn't save %s image: %s" % (image, e)) from e
        except OSError as e:
            self._remove(target_path)
            raise EngineCallError(
                "Couldn't write %s image to %s: %s" % (image, target_path, e)
            ) from e

        self.log.info("Image saved!")

    def _remove(self, path: str):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
