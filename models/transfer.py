from pydantic import AliasChoices, BaseModel, Field


class TransferRequest(BaseModel):
    to_account: str = Field(validation_alias=AliasChoices("to_account", "account_number"))
    # inf/nan would poison the balance for good
    amount: float = Field(allow_inf_nan=False)


class TransferResponse(BaseModel):
    transfered: float
    to: str
