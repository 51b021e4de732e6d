from pydantic import BaseModel, ConfigDict


class SnBaseModel(BaseModel):
    model_config = ConfigDict(
        protected_namespaces=(),
        populate_by_name=True,
        extra="ignore",
    )
