"""
Helper functions for the publish endpoint.
"""

from typing import Iterable, Tuple, Union
from urllib.parse import unquote

from fastapi import Request
from starlette.datastructures import UploadFile
from starlette.formparsers import MultiPartException

from app.core.constants import PACKAGE_FIELD_PREFIX, TEMPLATE_FIELD_PREFIX
from app.core.exceptions import ClientError
from app.services.publish import PackageUpload, PublishForm
from app.services.templates import TemplateAsset

FormItem = Tuple[str, Union[str, UploadFile]]


def parse_publish_form(items: Iterable[FormItem]) -> PublishForm:
    """
    Sort multipart fields into packages and template assets.

    ``package:<name>`` fields must be files. ``template:<template>:<asset>``
    fields are files (binary assets) or strings (inline text); the asset name
    is URL-encoded by the client. Other fields are ignored.

    Raises:
        ClientError: on a malformed field
    """
    form = PublishForm()
    for field_name, value in items:
        if field_name.startswith(PACKAGE_FIELD_PREFIX):
            name = field_name[len(PACKAGE_FIELD_PREFIX) :]
            if not name:
                raise ClientError("Package field without a package name")
            if not isinstance(value, UploadFile):
                raise ClientError(f"Package {name} must be uploaded as a file")
            form.packages.append(PackageUpload(name=name, source=value))

        elif field_name.startswith(TEMPLATE_FIELD_PREFIX):
            template, sep, asset = field_name[len(TEMPLATE_FIELD_PREFIX) :].partition(":")
            if not template or not sep or not asset:
                raise ClientError(f"Malformed template field: {field_name}")
            content_type = value.content_type if isinstance(value, UploadFile) else None
            form.assets.append(
                TemplateAsset(
                    template=template,
                    name=unquote(asset),
                    content=value,
                    content_type=content_type,
                )
            )
    return form


async def read_publish_form(request: Request) -> PublishForm:
    try:
        data = await request.form()
    except MultiPartException as e:
        raise ClientError(f"Invalid multipart body: {e.message}") from e
    return parse_publish_form(data.multi_items())
