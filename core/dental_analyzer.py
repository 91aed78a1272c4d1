"""
Mock dental image analyzer.

Stands in for a CNN classification service. It produces randomized but
well-formed results so the rest of the system (persistence, notifications,
admin analytics) can be exercised end to end; a real model client only needs
to return the same AnalysisOutcome.
"""
import asyncio
import random
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import urlparse

import config
from core.logger import logger


ISSUE_TYPES = ("cavity", "decay", "crack", "plaque", "inflammation", "healthy")

ISSUE_DESCRIPTIONS: Dict[str, str] = {
    "cavity": "A small hole or pit in the tooth structure, typically caused by bacterial acid",
    "decay": "Tooth decay or caries, indicating demineralization of tooth structure",
    "crack": "A visible crack or fracture in the tooth surface",
    "plaque": "Buildup of bacterial plaque on tooth surface",
    "inflammation": "Gum inflammation or gingivitis visible around the tooth",
    "healthy": "Tooth appears to be in healthy condition with no visible issues",
}

RECOMMENDATIONS_BY_ISSUE: Dict[str, List[dict]] = {
    "cavity": [
        {"title": "Schedule Dental Appointment",
         "description": "Visit a dentist for professional treatment. Early cavities can be treated with fillings.",
         "priority": "high"},
        {"title": "Improve Oral Hygiene",
         "description": "Brush twice daily with fluoride toothpaste and floss regularly",
         "priority": "high"},
        {"title": "Reduce Sugar Intake",
         "description": "Limit sugary foods and drinks that feed cavity-causing bacteria",
         "priority": "medium"},
    ],
    "decay": [
        {"title": "Urgent Dental Care",
         "description": "Tooth decay requires professional treatment. Schedule an appointment immediately.",
         "priority": "high"},
        {"title": "Fluoride Treatment",
         "description": "Ask your dentist about fluoride treatments to strengthen remaining tooth structure",
         "priority": "high"},
        {"title": "Pain Management",
         "description": "Use over-the-counter pain relievers if experiencing discomfort",
         "priority": "medium"},
    ],
    "crack": [
        {"title": "Dental Evaluation",
         "description": "A dentist needs to assess the crack severity and recommend treatment",
         "priority": "high"},
        {"title": "Avoid Hard Foods",
         "description": "Avoid chewing hard foods or ice to prevent worsening the crack",
         "priority": "high"},
        {"title": "Protective Measures",
         "description": "Consider a night guard if grinding is causing the crack",
         "priority": "medium"},
    ],
    "plaque": [
        {"title": "Professional Cleaning",
         "description": "Schedule a professional cleaning with your dentist or hygienist",
         "priority": "medium"},
        {"title": "Enhanced Brushing",
         "description": "Brush for 2 minutes twice daily, paying special attention to plaque buildup areas",
         "priority": "medium"},
        {"title": "Daily Flossing",
         "description": "Floss daily to remove plaque between teeth where brushing cannot reach",
         "priority": "medium"},
    ],
    "inflammation": [
        {"title": "Gum Care",
         "description": "Use an antimicrobial mouthwash and improve brushing technique",
         "priority": "medium"},
        {"title": "Professional Cleaning",
         "description": "Schedule a professional cleaning to remove tartar and plaque",
         "priority": "medium"},
        {"title": "Monitor Symptoms",
         "description": "Watch for bleeding, swelling, or pain and seek dental care if worsening",
         "priority": "low"},
    ],
    "healthy": [
        {"title": "Maintain Current Routine",
         "description": "Continue your current oral hygiene practices",
         "priority": "low"},
        {"title": "Regular Checkups",
         "description": "Visit your dentist every 6 months for preventive care",
         "priority": "low"},
        {"title": "Healthy Habits",
         "description": "Maintain a balanced diet and avoid tobacco and excessive sugar",
         "priority": "low"},
    ],
}

SEVERITY_SCORES = {"low": 1, "moderate": 2, "high": 3}
PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass
class AnalysisOutcome:
    """Result of analyzing one image."""
    detected_issues: List[dict]
    overall_severity: str
    recommendations: List[dict]
    processing_time: int  # milliseconds
    ml_model_version: str


def determine_overall_severity(issues: List[dict]) -> str:
    """
    Mean of per-issue severity scores (low=1, moderate=2, high=3),
    thresholded at 1.5 and 2.5. No issues means "low".
    """
    if not issues:
        return "low"

    avg_severity = sum(SEVERITY_SCORES[issue["severity"]] for issue in issues) / len(issues)

    if avg_severity < 1.5:
        return "low"
    if avg_severity < 2.5:
        return "moderate"
    return "high"


def build_recommendations(issues: List[dict]) -> List[dict]:
    """Look up recommendations per issue type, de-duplicate by title, order high -> low priority."""
    recommendations = []
    seen_titles = set()
    for issue in issues:
        for rec in RECOMMENDATIONS_BY_ISSUE.get(issue["type"], []):
            if rec["title"] not in seen_titles:
                recommendations.append(dict(rec))
                seen_titles.add(rec["title"])

    # sorted() is stable: first-seen order is kept within a priority
    return sorted(recommendations, key=lambda rec: PRIORITY_ORDER[rec["priority"]])


def validate_image_for_analysis(image_url: str, mime_type: str, file_size: int) -> tuple:
    """
    Check an image reference before analysis.

    Returns:
        Tuple of (is_valid, message)
    """
    if mime_type not in config.ALLOWED_IMAGE_MIME_TYPES:
        return False, "Invalid image format. Only JPEG and PNG are supported."

    if file_size > config.MAX_IMAGE_SIZE_MB * 1024 * 1024:
        return False, f"Image file is too large. Maximum {config.MAX_IMAGE_SIZE_MB}MB allowed."

    if not image_url:
        return False, "Invalid image URL."
    if image_url.startswith(config.LOCAL_UPLOADS_URL_PREFIX + "/"):
        return True, "Image validation passed"
    parsed = urlparse(image_url)
    if not parsed.scheme or not parsed.netloc:
        return False, "Invalid image URL."

    return True, "Image validation passed"


class DentalAnalyzer:
    """Randomized stand-in for the dental image classifier."""

    def __init__(
        self,
        min_delay: float = 2.0,
        max_delay: float = 5.0,
        model_version: str = "v1.0.2",
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            min_delay: Lower bound of the simulated processing delay (seconds)
            max_delay: Upper bound of the simulated processing delay (seconds)
            model_version: Version string stored with every result
            rng: Random source (seed it for reproducible output)
        """
        if min_delay < 0 or max_delay < min_delay:
            raise ValueError("Delay bounds must satisfy 0 <= min_delay <= max_delay")
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.model_version = model_version
        self.rng = rng or random.Random()

    async def analyze(self, image_url: str, image_key: str) -> AnalysisOutcome:
        """Simulate model inference for one image. Always returns a result."""
        start_time = time.monotonic()

        delay = self.rng.uniform(self.min_delay, self.max_delay)
        await asyncio.sleep(delay)

        detected_issues = self.generate_issues()
        overall_severity = determine_overall_severity(detected_issues)
        recommendations = build_recommendations(detected_issues)

        processing_time = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"Analyzed {image_key}: {len(detected_issues)} issue(s), "
            f"severity={overall_severity}, {processing_time}ms"
        )
        return AnalysisOutcome(
            detected_issues=detected_issues,
            overall_severity=overall_severity,
            recommendations=recommendations,
            processing_time=processing_time,
            ml_model_version=self.model_version,
        )

    def generate_issues(self) -> List[dict]:
        """70% of images get 1-3 random findings; the rest are reported healthy."""
        if self.rng.random() < 0.7:
            issues = []
            for _ in range(self.rng.randint(1, 3)):
                issue_type = self.rng.choice(ISSUE_TYPES)
                issues.append({
                    "type": issue_type,
                    "location": f"tooth_{self.rng.randint(1, 32)}",
                    "severity": self.random_severity(),
                    "confidence": self.rng.random() * 0.4 + 0.6,
                    "description": ISSUE_DESCRIPTIONS[issue_type],
                })
            return issues

        return [{
            "type": "healthy",
            "location": "overall",
            "severity": "low",
            "confidence": 0.95,
            "description": ISSUE_DESCRIPTIONS["healthy"],
        }]

    def random_severity(self) -> str:
        """50% low, 30% moderate, 20% high."""
        roll = self.rng.random()
        if roll < 0.5:
            return "low"
        if roll < 0.8:
            return "moderate"
        return "high"


def get_default_analyzer() -> DentalAnalyzer:
    """Analyzer configured from settings."""
    return DentalAnalyzer(
        min_delay=config.ANALYSIS_MIN_DELAY,
        max_delay=config.ANALYSIS_MAX_DELAY,
        model_version=config.ML_MODEL_VERSION,
    )
