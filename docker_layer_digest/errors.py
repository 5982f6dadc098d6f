class Error(Exception):
    pass


class DigestError(Error):
    code = 1
    stage = "convert"

    def __str__(self):
        return "[%s] %s" % (self.stage, super(DigestError, self).__str__())


class EngineCallError(DigestError):
    code = 2
    stage = "engine"


class ArchiveError(DigestError):
    code = 3
    stage = "archive"


class ArchiveUnavailableError(ArchiveError):
    pass


class ArchiveCorruptError(ArchiveError):
    code = 4


class EntryNotFoundError(ArchiveError):
    code = 5


class ManifestError(DigestError):
    code = 6
    stage = "manifest"


class ManifestMalformedError(ManifestError):
    pass


class ManifestEmptyError(ManifestError):
    code = 7


class LayerExtractError(DigestError):
    code = 8
    stage = "extract"


class LayerCompressError(DigestError):
    code = 9
    stage = "compress"


class HashComputeError(DigestError):
    code = 10
    stage = "hash"
