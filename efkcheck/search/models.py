from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, NamedTuple


class LogRecord(NamedTuple):
    """Indexed log record reduced to the host and one field value"""
    host: str
    value: str

    def __str__(self):
        return f"{self.host}>{self.value}"


class SearchHit(BaseModel):
    """Single search hit"""
    model_config = ConfigDict(populate_by_name=True)

    index: str = Field(default="", alias="_index")
    id: str = Field(default="", alias="_id")
    source: Dict[str, Any] = Field(default_factory=dict, alias="_source")

    def record(self, host_field: str, field: str) -> LogRecord:
        return LogRecord(str(self.source.get(host_field)), str(self.source.get(field)))


class SearchHits(BaseModel):
    """Hits envelope of a search response"""
    hits: List[SearchHit]


class SearchResponse(BaseModel):
    """Query-string search response"""
    hits: SearchHits


class IndexPattern(BaseModel):
    """Dashboard saved object of type index-pattern"""
    id: str
    type: str = "index-pattern"
    attributes: Dict[str, Any] = Field(default_factory=dict)
