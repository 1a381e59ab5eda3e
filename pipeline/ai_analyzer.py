"""
AI analysis stage for ingested photos.

Sends a stored photo to an OpenAI vision model together with project
documents (specifications, drawings, BOQ contract items), then drafts a
Non-Conformance Report (NCR) or Preventive Action Report (PAR) from the
analysis. Moves the photo through pending -> processing -> done/failed.
"""

import base64
import json
import logging
import mimetypes
import time
from datetime import datetime
from typing import Any

from db.models import Photo, ProcessingStatus, ReportType
from pipeline.storage_handler import PhotoStorage

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_PROMPT = (
    "You are an expert construction inspector. Examine this construction site "
    "photo and compare what you see against the project documents provided. "
    "Describe any work that deviates from the specifications, drawings or "
    "contract items, and any safety concerns visible in the photo."
)

NCR_SYSTEM_PROMPT = (
    "You are an expert construction inspector. Your task is to generate a "
    "detailed Non-Conformance Report (NCR) based on the analysis of a "
    "construction site photo. The report should be professional, specific, "
    "and reference relevant specifications, drawings, or contract items."
)

PAR_SYSTEM_PROMPT = (
    "You are an expert construction safety inspector. Your task is to generate "
    "a detailed Preventive Action Report (PAR) based on the analysis of a "
    "construction site photo that shows safety concerns. The report should be "
    "professional, specific, and reference relevant safety regulations or "
    "standards."
)


class AnalysisError(Exception):
    """Exception raised when photo analysis fails."""
    pass


def _document_sections(
    specifications: str | None,
    drawings: str | None,
    contract_items: str | None,
) -> list[str]:
    sections = []
    if specifications:
        sections.append(f"Specifications:\n{specifications}")
    if drawings:
        sections.append(f"Drawings:\n{drawings}")
    if contract_items:
        sections.append(f"Contract Items (BOQ):\n{contract_items}")
    return sections


def format_photo_details(photo_details: dict[str, Any]) -> str:
    """Render location, capture time and weather for a report prompt."""
    taken_at = photo_details.get("taken_at")
    if isinstance(taken_at, str):
        try:
            taken_at = datetime.fromisoformat(taken_at)
        except ValueError:
            pass
    if isinstance(taken_at, datetime):
        taken_at = taken_at.strftime("%Y-%m-%d %H:%M:%S")

    weather = photo_details.get("weather_data")

    return "\n".join([
        "Photo Details:",
        f"- Location: {photo_details.get('location_description') or 'Not specified'}",
        f"- Date/Time: {taken_at or 'Not specified'}",
        f"- Weather: {json.dumps(weather, ensure_ascii=False) if weather else 'Not specified'}",
    ])


def image_data_url(data: bytes, filename: str) -> str:
    """Encode image bytes as a data URL for the vision API."""
    mime, _ = mimetypes.guess_type(filename)
    return f"data:{mime or 'image/jpeg'};base64," + base64.b64encode(data).decode()


class PhotoAnalyzer:
    """
    AI-powered photo analysis and report drafting using the OpenAI API.

    The OpenAI client, the photo store and the object store are injected.
    """

    def __init__(
        self,
        client,
        photo_storage: PhotoStorage,
        object_store,
        bucket: str = "photos",
        model: str = "gpt-4o",
        report_model: str = "gpt-4-turbo",
        max_tokens: int = 1000,
        max_retries: int = 3,
    ):
        """
        Initialize the analyzer.

        Args:
            client: openai.OpenAI instance (or compatible fake).
            photo_storage: Photo record store.
            object_store: Object store holding the uploaded files.
            bucket: Bucket holding the photos.
            model: Vision model for image analysis.
            report_model: Model for NCR/PAR drafting.
            max_tokens: Completion token limit per request.
            max_retries: Attempts per model call.
        """
        self.client = client
        self.photo_storage = photo_storage
        self.object_store = object_store
        self.bucket = bucket
        self.model = model
        self.report_model = report_model
        self.max_tokens = max_tokens
        self.max_retries = max_retries

    def image_url(self, photo: Photo) -> str:
        """
        URL the vision model reads the photo from.

        A store with a public base URL hands out its object URL; otherwise the
        bytes are read back and sent inline as a base64 data URL.
        """
        if getattr(self.object_store, "public_base_url", None):
            return self.object_store.public_url(self.bucket, photo.storage_path)
        data = self.object_store.get_object(self.bucket, photo.storage_path)
        return image_data_url(data, photo.storage_path)

    def _complete(self, model: str, messages: list[dict[str, Any]]) -> str:
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                )
                return response.choices[0].message.content or ""

            except Exception as e:
                last_error = e
                logger.warning(
                    f"OpenAI request attempt {attempt}/{self.max_retries} failed: {e}"
                )
                if attempt < self.max_retries:
                    time.sleep(2 ** attempt)  # Exponential backoff

        raise AnalysisError(
            f"OpenAI request failed after {self.max_retries} attempts: {last_error}"
        )

    def analyze_image(
        self,
        image_url: str,
        prompt: str = DEFAULT_ANALYSIS_PROMPT,
        specifications: str | None = None,
        drawings: str | None = None,
        contract_items: str | None = None,
    ) -> str:
        """
        Analyze a photo against project documents.

        Args:
            image_url: Public URL or data URL of the photo.
            prompt: Instruction for the vision model.
            specifications: Relevant specification text.
            drawings: Relevant drawing notes.
            contract_items: Relevant BOQ line items.

        Returns:
            Analysis text.

        Raises:
            AnalysisError: If the model call fails after all retries.
        """
        full_prompt = "\n\n".join(
            [prompt] + _document_sections(specifications, drawings, contract_items)
        )
        return self._complete(self.model, [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": full_prompt},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            },
        ])

    def generate_ncr_report(
        self,
        analysis: str,
        photo_details: dict[str, Any],
        specifications: str | None = None,
        drawings: str | None = None,
        contract_items: str | None = None,
    ) -> str:
        """Draft a Non-Conformance Report from an analysis."""
        documents = "\n".join(_document_sections(specifications, drawings, contract_items))
        content = (
            "Generate a Non-Conformance Report based on the following analysis:\n\n"
            f"Analysis: {analysis}\n\n"
            f"{format_photo_details(photo_details)}\n\n"
            f"{documents}\n\n"
            "Format the report with the following sections:\n"
            "1. Title\n"
            "2. Description of Non-Conformance\n"
            "3. Reference to Specifications/Drawings/Contract Items\n"
            "4. Recommended Corrective Action\n"
            "5. Severity (Low, Medium, High)\n"
        )
        return self._complete(self.report_model, [
            {"role": "system", "content": NCR_SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ])

    def generate_par_report(self, analysis: str, photo_details: dict[str, Any]) -> str:
        """Draft a Preventive Action Report from an analysis."""
        content = (
            "Generate a Preventive Action Report for safety issues based on the "
            "following analysis:\n\n"
            f"Analysis: {analysis}\n\n"
            f"{format_photo_details(photo_details)}\n\n"
            "Format the report with the following sections:\n"
            "1. Title\n"
            "2. Description of Safety Concern\n"
            "3. Reference to Safety Regulations/Standards\n"
            "4. Recommended Preventive Action\n"
            "5. Severity (Low, Medium, High)\n"
        )
        return self._complete(self.report_model, [
            {"role": "system", "content": PAR_SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ])

    def process_photo(
        self,
        photo_id: int,
        report_type: ReportType | None = None,
        prompt: str = DEFAULT_ANALYSIS_PROMPT,
        specifications: str | None = None,
        drawings: str | None = None,
        contract_items: str | None = None,
    ) -> Photo:
        """
        Analyze one stored photo and optionally draft a report.

        Args:
            photo_id: ID of the photo record.
            report_type: NCR, PAR, or None for analysis only.
            prompt: Instruction for the vision model.
            specifications: Relevant specification text.
            drawings: Relevant drawing notes.
            contract_items: Relevant BOQ line items.

        Returns:
            The updated Photo.

        Raises:
            AnalysisError: If the photo is missing or any step fails; the
                photo is marked failed in the latter case.
        """
        photo = self.photo_storage.repository.get_by_id(photo_id)
        if photo is None:
            raise AnalysisError(f"Photo {photo_id} not found")

        self.photo_storage.mark_processing(photo_id)

        try:
            image_url = self.image_url(photo)
            analysis = self.analyze_image(
                image_url, prompt, specifications, drawings, contract_items
            )

            report = None
            details = photo.to_dict()
            if report_type is ReportType.NCR:
                report = self.generate_ncr_report(
                    analysis, details, specifications, drawings, contract_items
                )
            elif report_type is ReportType.PAR:
                report = self.generate_par_report(analysis, details)

        except Exception as e:
            self.photo_storage.mark_failed(photo_id, str(e))
            raise AnalysisError(f"Failed to analyze photo {photo_id}: {e}") from e

        self.photo_storage.mark_done(photo_id, analysis, report_type, report)
        return self.photo_storage.repository.get_by_id(photo_id)

    def process_pending(
        self,
        limit: int | None = None,
        report_type: ReportType | None = None,
        continue_on_error: bool = True,
    ) -> dict[str, int]:
        """
        Analyze photos still waiting in the pending state.

        Args:
            limit: Maximum number of photos to analyze.
            report_type: Report to draft for each photo.
            continue_on_error: If True, continue after a failed photo.

        Returns:
            Counts of done and failed photos.
        """
        counts = {ProcessingStatus.DONE.value: 0, ProcessingStatus.FAILED.value: 0}
        pending = self.photo_storage.get_pending(limit)

        for i, photo in enumerate(pending, 1):
            logger.info(f"Analyzing photo {i}/{len(pending)}: {photo.storage_path}")
            try:
                self.process_photo(photo.id, report_type=report_type)
                counts[ProcessingStatus.DONE.value] += 1
            except AnalysisError as e:
                logger.error(f"Failed to analyze {photo.storage_path}: {e}")
                counts[ProcessingStatus.FAILED.value] += 1
                if not continue_on_error:
                    raise

        return counts
