from pydantic import BaseModel, ConfigDict, Field


class DocumentBatchRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    record_id: str = Field(min_length=1, alias="recordId")
    documents: list[str] = Field(min_length=1)


class DocumentBatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    processed: int
    delivered: int
    url_only: int = Field(alias="urlOnly")
    dropped: int


class FileFetchRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    file_url: str = Field(min_length=1, alias="fileUrl")


class FileFetchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    content_type: str = Field(alias="contentType")
    base64_data: str = Field(alias="base64Data")
    size_bytes: int = Field(alias="sizeBytes")
    sha256: str
