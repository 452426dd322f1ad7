"""
Request dependencies
"""

from fastapi import Header, HTTPException, Request

from soulsync.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


async def get_owner_id(x_user_id: str = Header(default="")) -> str:
    """Owner id resolved by the upstream auth layer."""
    owner_id = x_user_id.strip()
    if not owner_id:
        raise HTTPException(status_code=401, detail="Missing user identity")
    return owner_id
