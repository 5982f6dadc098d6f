# -*- coding: utf-8 -*-

import os

import docker
import requests

from docker_layer_digest.errors import EngineCallError, Error

DEFAULT_TIMEOUT_SECONDS = 600


def docker_timeout():
    try:
        timeout = int(os.getenv("DOCKER_TIMEOUT", DEFAULT_TIMEOUT_SECONDS))
    except ValueError:
        raise Error(
            "Provided timeout value: %s cannot be parsed as integer, exiting."
            % os.getenv("DOCKER_TIMEOUT")
        )

    if not timeout > 0:
        raise Error(
            "Provided timeout value needs to be greater than zero, currently: %s, exiting."
            % timeout
        )

    return timeout


def docker_client(log):
    log.debug("Preparing Docker client...")

    params = docker.utils.kwargs_from_env()
    params["timeout"] = docker_timeout()

    try:
        client = docker.APIClient(version="auto", **params)
    except docker.errors.DockerException as e:
        log.error(
            "Could not create Docker client, please make sure that you specified valid parameters in the 'DOCKER_HOST' environment variable."
        )
        raise EngineCallError("Error while creating the Docker client: %s" % e) from e

    if valid_docker_connection(client):
        log.debug("Docker client ready")
        return client

    log.error(
        "Could not connect to the Docker daemon, please make sure the Docker daemon is running."
    )

    if os.environ.get("DOCKER_HOST"):
        log.error(
            "If Docker daemon is running, please make sure that you specified valid parameters in the 'DOCKER_HOST' environment variable."
        )

    raise EngineCallError("Cannot connect to Docker daemon")


def valid_docker_connection(client):
    try:
        return client.ping()
    except (requests.exceptions.ConnectionError, docker.errors.APIError):
        return False
