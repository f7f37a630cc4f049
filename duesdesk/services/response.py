"""List envelope shared by the collection endpoints."""


def list_response(items: list, limit: int, offset: int) -> dict:
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


class ListResponseMixin:
    """Adds ``list_response`` to service classes that define ``list``.

    ``limit`` and ``offset`` may be passed as keywords or as the last two
    positional arguments.
    """

    @classmethod
    def list_response(cls, db, *args, **kwargs) -> dict:
        limit = kwargs.pop("limit", None)
        offset = kwargs.pop("offset", None)
        if limit is None or offset is None:
            if len(args) < 2:
                raise ValueError("limit and offset are required for list responses")
            *args, limit, offset = args
        items = cls.list(db, *args, limit=limit, offset=offset, **kwargs)
        return list_response(items, limit, offset)
