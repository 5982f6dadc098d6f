# -*- coding: utf-8 -*-

import json
from typing import List, NamedTuple

from docker_layer_digest.errors import ManifestEmptyError, ManifestMalformedError

MANIFEST_FILE = "manifest.json"


class ExportManifest(NamedTuple):
    """
    One image entry of the ``manifest.json`` file written by ``docker save``.

    The order of ``layers`` is the order used by the engine and must be kept.
    """

    config: str
    repo_tags: List[str]
    layers: List[str]


def _is_list_of_strings(value) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _decode_manifest(index: int, entry) -> ExportManifest:
    if not isinstance(entry, dict):
        raise ManifestMalformedError(
            "Manifest entry %s is not an object: %r" % (index, entry)
        )

    config = entry.get("Config")

    if not isinstance(config, str):
        raise ManifestMalformedError(
            "Manifest entry %s has no valid 'Config' field" % index
        )

    # Images saved by ID are not tagged, Docker writes null then
    repo_tags = entry.get("RepoTags")

    if repo_tags is None:
        repo_tags = []

    if not _is_list_of_strings(repo_tags):
        raise ManifestMalformedError(
            "Manifest entry %s has an invalid 'RepoTags' field" % index
        )

    layers = entry.get("Layers")

    if not _is_list_of_strings(layers) or not layers:
        raise ManifestMalformedError(
            "Manifest entry %s has no valid 'Layers' field" % index
        )

    return ExportManifest(config, repo_tags, layers)


def decode_manifests(data: bytes) -> List[ExportManifest]:
    """
    Decodes content of the ``manifest.json`` file into a list of
    :class:`ExportManifest` objects, in the order they are stored.
    """

    try:
        manifests = json.loads(data)
    except (ValueError, TypeError) as e:
        raise ManifestMalformedError("Manifest is not valid JSON: %s" % e) from e

    if not isinstance(manifests, list):
        raise ManifestMalformedError(
            "Manifest is expected to be a JSON array, got %s"
            % type(manifests).__name__
        )

    return [_decode_manifest(i, entry) for i, entry in enumerate(manifests)]


def select_manifest(manifests: List[ExportManifest], index: int = 0) -> ExportManifest:
    if not 0 <= index < len(manifests):
        raise ManifestEmptyError(
            "Manifest with index %s requested, but the archive describes %s image(s)"
            % (index, len(manifests))
        )

    return manifests[index]
