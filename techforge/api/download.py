"""
Download API route.

GET /download?template=<name>&license=<key> returns the watermarked bundle.
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from techforge.core.container import Services, get_services


router = APIRouter(tags=["download"])


@router.get("/download")
def download(
    template: str = Query(""),
    license: str = Query(""),
    services: Services = Depends(get_services),
):
    """
    Exchange a license for a template bundle.

    Errors:
        400: Unknown template or missing license
        403: Invalid, inactive or insufficient license (reason in message)
        500: Storage failure
    """
    bundle = services.downloads.download(template, license)
    return Response(
        content=bundle.content,
        media_type=bundle.content_type,
        headers={"Content-Disposition": f'attachment; filename="{bundle.filename}"'},
    )
