"""Extract flight and hotel bookings from uploaded documents using Claude."""

from __future__ import annotations

import json
import os
import re
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from typing import Optional

import anthropic
import openpyxl
import pdfplumber
from PyPDF2 import PdfReader

from .errors import ExtractionError
from .models import ExtractedDocument, SourceDocument
from .normalizer import normalize_document

EXTRACTION_MODEL = os.environ.get("EXTRACTION_MODEL", "claude-sonnet-4-20250514")
EXTRACTION_WORKERS = int(os.environ.get("EXTRACTION_WORKERS", "4"))

SYSTEM_PROMPT = (
    "You are a travel document parser. Extract structured data from travel documents "
    "and return ONLY valid JSON. Do not include any explanations or markdown formatting."
)

FLIGHT_INDICATORS = [
    "flight", "volo", "boarding", "itinerary", "ticket", "eticket", "ricevut", "viaggio",
    "biglietto", "airways", "airline",
]
HOTEL_INDICATORS = [
    "hotel", "booking", "reservation", "accommodation", "soggiorno", "albergo",
    "conferma", "prenotazione",
]

# Fallbacks when the document itself gives no passenger name
PASSENGER_FILENAME_PATTERNS = [
    re.compile(r"per\s+([A-Z][A-Z\s]+)\s+del", re.IGNORECASE),
    re.compile(r"for\s+([A-Z][A-Z\s]+)\s+", re.IGNORECASE),
    re.compile(r"viaggio\s+([A-Z][A-Z\s]+)\s+", re.IGNORECASE),
]

FLIGHT_PROMPT = """Extract flight information from this document. Return a JSON object with this exact structure.

CRITICAL REQUIREMENTS:
1. The "passenger" field at the TOP LEVEL is MANDATORY - you MUST always include it with the passenger's full name and type (ADT/CHD/INF). This is the most important field.
2. Look for the passenger name in: "NOME/NAME", "PASSEGGERO", "PASSENGER", title like "MR/MRS/MS", or anywhere the traveler's name appears.
3. If the flight duration is not explicitly stated, calculate it from departure and arrival times.

{
  "flights": [
    {
      "date": "YYYY-MM-DD",
      "flightNumber": "XX123",
      "airline": "Airline Name",
      "operatedBy": "Airline Name or null",
      "departure": {"code": "XXX", "city": "City Name", "airport": "Airport Name", "terminal": "1 or null"},
      "arrival": {"code": "XXX", "city": "City Name", "airport": "Airport Name", "terminal": "1 or null"},
      "departureTime": "HH:MM",
      "arrivalTime": "HH:MM",
      "arrivalNextDay": false,
      "duration": "HH:MM",
      "class": "Economy/Business/etc",
      "bookingReference": "XXXXXX",
      "ticketNumber": "XXX XXXXXXXXXX or null",
      "seat": "12A or null",
      "baggage": "0PC or 1PC etc",
      "status": "OK"
    }
  ],
  "passenger": {"name": "PASSENGER FULL NAME (REQUIRED)", "type": "ADT or CHD or INF", "ticketNumber": "XXX XXXXXXXXXX or null"},
  "booking": {
    "reference": "XXXXXX",
    "ticketNumber": "XXX XXXXXXXXXX",
    "issueDate": "YYYY-MM-DD or null",
    "totalAmount": {"value": 123.45, "currency": "EUR"}
  }
}"""

HOTEL_PROMPT = """Extract ALL hotel booking information from this document. You MUST include EVERY field listed below - do not skip any fields.

MANDATORY EXTRACTION RULES:
- For "city": use the MAIN CITY (Tokyo, not Taito-ku). Wards and districts are not cities.
- For "roomTypes": extract the room type name in both Italian and English
- For "breakfast": check if breakfast/colazione is included
- For "pinCode": look for PIN, codice PIN, or similar
- If multiple rooms with same confirmation, keep as ONE entry with rooms count

Return this EXACT JSON structure:

{
  "hotels": [{
    "name": "Hotel name",
    "address": {
      "street": "Street address",
      "district": "Ward/neighborhood or null",
      "city": "MAIN CITY NAME",
      "postalCode": "Postal code",
      "country": "Country",
      "fullAddress": "Complete address string"
    },
    "phone": "Phone number or null",
    "checkIn": {"date": "YYYY-MM-DD", "time": "HH:MM"},
    "checkOut": {"date": "YYYY-MM-DD", "time": "HH:MM"},
    "nights": 0,
    "rooms": 1,
    "roomTypes": [{"it": "Tipo camera", "en": "Room type"}],
    "guests": {"adults": 0, "children": [{"age": 0}], "total": 0},
    "guestName": "Guest name",
    "confirmationNumber": "Confirmation number",
    "pinCode": "PIN code or null",
    "price": {"total": {"value": 0, "currency": "EUR"}},
    "breakfast": {"included": false, "type": null},
    "source": "Booking.com"
  }]
}"""


UNKNOWN_PROMPT = """This is a travel document. Extract any flight or hotel information you can find. Return a JSON object with "flights" array and/or "hotels" array, plus a "passenger" object when the document names a traveler.

For flights include: date, flightNumber, airline, departure (code, city, airport), arrival (code, city, airport), departureTime, arrivalTime, bookingReference, ticketNumber, status.

For hotels include: name, address (street, city, country, fullAddress), checkIn (date, time), checkOut (date, time), nights, confirmationNumber, guestName."""


def detect_document_type(filename: str) -> str:
    """Guess 'flight', 'hotel' or 'unknown' from the file name."""
    filename_lower = (filename or "").lower()
    for indicator in FLIGHT_INDICATORS:
        if indicator in filename_lower:
            return "flight"
    for indicator in HOTEL_INDICATORS:
        if indicator in filename_lower:
            return "hotel"
    return "unknown"


def passenger_from_filename(filename: Optional[str]) -> Optional[str]:
    """Title-cased traveler name from names like "... per MARIO ROSSI del 15JUN.pdf"."""
    if not filename:
        return None
    for pattern in PASSENGER_FILENAME_PATTERNS:
        match = pattern.search(filename)
        if match and match.group(1).strip():
            return " ".join(word.capitalize() for word in match.group(1).split())
    return None


def get_prompt_for_doc_type(doc_type: str) -> str:
    if doc_type == "flight":
        return FLIGHT_PROMPT
    if doc_type == "hotel":
        return HOTEL_PROMPT
    return UNKNOWN_PROMPT


def fix_json_string(json_str: str) -> str:
    """Fix common JSON issues that Claude sometimes produces."""
    # Remove trailing commas before ] or }
    json_str = re.sub(r',\s*([}\]])', r'\1', json_str)
    # Remove control characters except newlines and tabs
    json_str = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', json_str)
    return json_str


def parse_json_response(response_text: str) -> dict:
    """Pull the JSON object out of a Claude reply."""
    if "```json" in response_text:
        json_str = response_text.split("```json")[1].split("```")[0].strip()
    elif "```" in response_text:
        json_str = response_text.split("```")[1].split("```")[0].strip()
    else:
        json_str = response_text.strip()

    json_str = fix_json_string(json_str)

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError:
        match = re.search(r'\{[\s\S]*\}', json_str)
        if not match:
            raise ExtractionError("Could not parse Claude response as JSON")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Could not parse Claude response as JSON: {e}")

    if not isinstance(data, dict):
        raise ExtractionError("Claude response is not a JSON object")
    return data


class BookingParser:
    """Parse booking documents (PDF, Excel, plain text) using Claude."""

    def __init__(self, api_key: Optional[str] = None, client=None):
        if client is not None:
            self.client = client
            return
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY env var or pass api_key."
            )
        self.client = anthropic.Anthropic(api_key=self.api_key)

    def extract(self, document_text: str, type_hint: str = "unknown") -> dict:
        """Map document text to ``{flights, hotels, passenger?, booking?}``."""
        message = self.client.messages.create(
            model=EXTRACTION_MODEL,
            max_tokens=4096,
            system=SYSTEM_PROMPT,
            messages=[
                {
                    "role": "user",
                    "content": get_prompt_for_doc_type(type_hint) + "\n\nDocument text:\n" + document_text,
                }
            ],
        )
        return parse_json_response(message.content[0].text)

    def parse_file(self, file_path: str | Path) -> ExtractedDocument:
        """Parse a booking document from disk."""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        return self.parse_document(file_path.name, file_path.read_bytes())

    def parse_document(
        self,
        filename: str,
        content: bytes,
        index: int = 0,
        mime_type: str = "application/pdf",
    ) -> ExtractedDocument:
        """Extract and normalize one document. Raises ExtractionError on failure."""
        document = SourceDocument(filename=filename, content=content, mime_type=mime_type)
        text = self.document_text(document)
        doc_type = detect_document_type(filename)
        data = self.extract(text, doc_type)

        passenger = data.get("passenger")
        if data.get("flights") and not (isinstance(passenger, dict) and passenger.get("name")):
            name = passenger_from_filename(filename)
            if name:
                print(f"[EXTRACT] No passenger in {filename}, using name from filename: {name}")
                data["passenger"] = {**(passenger if isinstance(passenger, dict) else {}), "name": name}
        return normalize_document(data, index, filename=filename)

    def parse_documents(self, documents: list[SourceDocument]) -> list[ExtractedDocument]:
        """Parse a batch concurrently, one call per file.

        A failing file yields an ExtractedDocument with ``error`` set and no
        records; the others are unaffected.
        """
        if not documents:
            return []

        def run(index: int, document: SourceDocument) -> ExtractedDocument:
            try:
                print(f"[EXTRACT] Processing file: {document.filename}")
                result = self.parse_document(
                    document.filename, document.content, index, document.mime_type
                )
                print(
                    f"[EXTRACT] {document.filename}: {len(result.flights)} flights, "
                    f"{len(result.hotels)} hotels"
                )
                return result
            except Exception as e:
                print(f"[EXTRACT] Error processing {document.filename}: {e}")
                return ExtractedDocument(index=index, filename=document.filename, error=str(e))

        workers = max(1, min(EXTRACTION_WORKERS, len(documents)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(run, i, doc) for i, doc in enumerate(documents)]
            return [future.result() for future in futures]

    def document_text(self, document: SourceDocument) -> str:
        suffix = Path(document.filename).suffix.lower()
        if suffix in (".xlsx", ".xls"):
            return self._extract_text_from_excel(document.content)
        if suffix in (".txt", ".eml", ".html", ".htm"):
            try:
                return document.content.decode("utf-8")
            except UnicodeDecodeError:
                return document.content.decode("latin-1")
        if suffix == ".pdf" or document.mime_type == "application/pdf":
            return self._extract_text_from_pdf(document.content)
        raise ExtractionError(f"Unsupported file format: {suffix or document.mime_type}")

    def _extract_text_from_pdf(self, content: bytes) -> str:
        """Text of every page; PyPDF2 reads what pdfplumber cannot."""
        pages = []
        try:
            with pdfplumber.open(BytesIO(content)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as e:
            print(f"[EXTRACT] Warning: pdfplumber failed: {e}")

        if not any(p.strip() for p in pages):
            print("[EXTRACT] No text from pdfplumber, trying PyPDF2")
            try:
                pages = [page.extract_text() or "" for page in PdfReader(BytesIO(content)).pages]
            except Exception as e:
                print(f"[EXTRACT] Warning: PyPDF2 failed: {e}")
                pages = []

        text = "\n\n".join(p for p in pages if p.strip())
        if not text:
            raise ExtractionError("Could not extract any text from PDF. The file may be image-based or corrupted.")
        return text

    def _extract_text_from_excel(self, content: bytes) -> str:
        """Extract text content from an Excel workbook."""
        text_parts = []
        workbook = openpyxl.load_workbook(BytesIO(content), data_only=True)

        for sheet_name in workbook.sheetnames:
            sheet = workbook[sheet_name]
            text_parts.append(f"=== Sheet: {sheet_name} ===")
            for row in sheet.iter_rows():
                row_values = [str(cell.value) for cell in row if cell.value is not None]
                if row_values:
                    text_parts.append(" | ".join(row_values))

        return "\n".join(text_parts)
