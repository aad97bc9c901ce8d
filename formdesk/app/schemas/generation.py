"""
Generation artifacts and cache entries.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class GenerationCacheEntry(BaseModel):
    """
    Memoized result of a successful generation.

    Valid only while ``data_hash`` equals the hash of the template's
    current field values.
    """

    template_id: str
    data_hash: str
    word_artifact: bytes
    pdf_artifact: bytes

    model_config = ConfigDict(frozen=True)


class EmailReceipt(BaseModel):
    """Acknowledgement returned by the e-mail endpoint."""

    success: bool
    recipients: List[str]
    message: Optional[str] = None

    model_config = ConfigDict(frozen=True)
