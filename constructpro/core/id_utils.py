import uuid

import shortuuid


def generate_shortuuid() -> str:
    return shortuuid.uuid()


def generate_uuid() -> str:
    return str(uuid.uuid4())


def generate_short_token(length: int = 12) -> str:
    return shortuuid.ShortUUID().random(length=length)
