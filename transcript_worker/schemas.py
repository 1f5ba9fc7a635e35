from typing import List, Optional

from pydantic import BaseModel, Field


class TaddySeries(BaseModel):
    """Podcast series returned by the Taddy `getPodcastSeries` lookup."""

    uuid: str
    name: Optional[str] = None
    rssUrl: Optional[str] = None


class TaddyTranscript(BaseModel):
    """Pre-existing transcript attached to an episode (free tier)."""

    text: Optional[str] = None
    isPartial: bool = False
    wordCount: Optional[int] = Field(
        default=None,
        description="Provider word count; estimated from the text when missing"
    )
    percentComplete: Optional[float] = None


class TaddyEpisode(BaseModel):
    """Podcast episode returned by the Taddy `getPodcastEpisode` lookup."""

    uuid: str
    name: Optional[str] = None
    guid: Optional[str] = None
    taddyTranscribeStatus: Optional[str] = Field(
        default=None,
        description="On-demand transcription state: PROCESSING, COMPLETED or FAILED"
    )
    transcripts: Optional[List[TaddyTranscript]] = None


class TaddyTranscriptItem(BaseModel):
    """One segment of a generated transcript (business tier)."""

    id: Optional[str] = None
    text: Optional[str] = None
    speaker: Optional[str] = None
    startTimecode: Optional[int] = None
    endTimecode: Optional[int] = None


class DeepgramAlternative(BaseModel):
    transcript: str = ""
    confidence: Optional[float] = None


class DeepgramChannel(BaseModel):
    alternatives: List[DeepgramAlternative] = Field(default_factory=list)


class DeepgramResults(BaseModel):
    channels: List[DeepgramChannel] = Field(default_factory=list)


class DeepgramMetadata(BaseModel):
    request_id: Optional[str] = None
    duration: Optional[float] = Field(
        default=None,
        description="Audio duration in seconds"
    )


class DeepgramResponse(BaseModel):
    """Prerecorded transcription response from the Deepgram listen endpoint."""

    metadata: Optional[DeepgramMetadata] = None
    results: Optional[DeepgramResults] = None

    def first_transcript(self) -> Optional[str]:
        """Return the first channel's first alternative transcript, if any."""
        if not self.results or not self.results.channels:
            return None
        alternatives = self.results.channels[0].alternatives
        if not alternatives:
            return None
        return alternatives[0].transcript
