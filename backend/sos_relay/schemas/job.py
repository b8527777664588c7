from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class JobCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    company_name: str = Field(min_length=1, alias="companyName")
    record_id: str = Field(min_length=1, alias="recordId")
    # Older CRM flows still send the jurisdiction as "state".
    jurisdiction: str = Field(min_length=1, validation_alias=AliasChoices("jurisdiction", "state"))


class JobAccepted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    status: str = "QUEUED"
