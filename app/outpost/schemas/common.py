from pydantic import BaseModel


class ListPaginationMeta(BaseModel):
    total: int
    count: int
    limit: int
    offset: int
