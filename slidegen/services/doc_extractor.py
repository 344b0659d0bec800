from io import BytesIO

from pypdf import PdfReader

from slidegen.services.file_validation import PDF_MIME, UploadedFile


_UTF16_BOMS = (b"\xff\xfe", b"\xfe\xff")


def decode_text(data: bytes) -> str:
    if data.startswith(_UTF16_BOMS):
        # The utf-16 codec reads the BOM for byte order and drops it.
        return data.decode("utf-16", errors="ignore")
    return data.decode("utf-8-sig", errors="ignore")


def extract_text(file: UploadedFile) -> str:
    if file.content_type == PDF_MIME:
        reader = PdfReader(BytesIO(file.data))
        return "\n".join((page.extract_text() or "") for page in reader.pages)

    if file.content_type.startswith("text/"):
        return decode_text(file.data)

    raise ValueError(f"Unsupported document type: {file.content_type}")
