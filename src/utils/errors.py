class DirectorError(Exception):
    """Base class for radio director failures"""


class TimelineGenerationError(DirectorError):
    """The content generator could not produce a usable timeline"""


class TimelineParseError(TimelineGenerationError):
    """A generator response could not be turned into a timeline"""


class MediaDownloadError(DirectorError):
    """Downloading a resolved media URL failed"""
