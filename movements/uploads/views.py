"""
Invoice PDF upload.

Files are written through Django's default storage under
SCSE_UPLOAD_SUBDIR and served from MEDIA_URL; the returned path is what
the movement forms store in attachment_url.
"""
import logging
import random
import time

from django.conf import settings
from django.core.files.storage import default_storage
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes
from rest_framework.parsers import FormParser, MultiPartParser

from scse_project.response_formatter import error_response, success_response

logger = logging.getLogger(__name__)

UPLOAD_FIELD = 'pdfFile'
PDF_CONTENT_TYPE = 'application/pdf'


def build_upload_name():
    """nfs/nf-<milliseconds>-<random>.pdf"""
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10 ** 9)}"
    return f"{settings.SCSE_UPLOAD_SUBDIR}/nf-{unique_suffix}.pdf"


@api_view(['POST'])
@parser_classes([MultiPartParser, FormParser])
def upload_pdf(request):
    """
    Upload one invoice PDF.

    POST /api/upload/
    - multipart/form-data with the file in field "pdfFile"
    - Returns: { "filePath": "/uploads/nfs/nf-...pdf" }
    """
    uploaded = request.FILES.get(UPLOAD_FIELD)
    if uploaded is None:
        return error_response(
            message='Nenhum ficheiro PDF válido enviado.',
            status_code=status.HTTP_400_BAD_REQUEST
        )

    if uploaded.content_type != PDF_CONTENT_TYPE:
        logger.warning(f"Rejected upload '{uploaded.name}' ({uploaded.content_type}) from {request.user.username}")
        return error_response(
            message='Tipo de ficheiro inválido. Apenas PDFs são permitidos.',
            status_code=status.HTTP_400_BAD_REQUEST
        )

    if uploaded.size > settings.SCSE_UPLOAD_MAX_BYTES:
        return error_response(
            message=f'Erro no upload: o ficheiro excede o limite de '
                    f'{settings.SCSE_UPLOAD_MAX_BYTES // (1024 * 1024)} MB.',
            status_code=status.HTTP_400_BAD_REQUEST
        )

    saved_name = default_storage.save(build_upload_name(), uploaded)
    file_path = f"/{settings.MEDIA_URL.strip('/')}/{saved_name}"
    logger.info(f"Stored upload {file_path} ({uploaded.size} bytes) for {request.user.username}")

    return success_response(
        data={'filePath': file_path},
        message='Ficheiro enviado com sucesso.'
    )
