from __future__ import annotations

from .models import URGENCY_LEVELS, AssessmentRequest


def build_assessment_prompt(request: AssessmentRequest) -> str:
    urgency_choices = "/".join(URGENCY_LEVELS)
    return (
        "You are a medical AI assistant. Analyze the following symptoms and provide a health assessment.\n"
        "\n"
        f"Symptoms: {request.symptoms}\n"
        f"Pain Level: {request.pain_level}\n"
        f"Duration: {request.duration}\n"
        f"Medications Taken: {request.medications_taken}\n"
        f"Additional Symptoms: {request.additional_symptoms or 'None'}\n"
        "\n"
        "Please provide:\n"
        f"1. Urgency Level ({urgency_choices})\n"
        "2. Confidence Score (integer 0-100)\n"
        "3. Detailed recommendations\n"
        "4. Recommended timeline for medical consultation\n"
        "\n"
        "Respond with a single JSON object and nothing else. It must have exactly these four keys:\n"
        "{\n"
        f'  "urgencyLevel": one of "{URGENCY_LEVELS[0]}", "{URGENCY_LEVELS[1]}", "{URGENCY_LEVELS[2]}",\n'
        '  "confidenceScore": an integer between 0 and 100,\n'
        '  "recommendations": "Detailed recommendations here...",\n'
        '  "timeline": "a short window such as 1-2 days"\n'
        "}\n"
    )


def build_chat_prompt(message: str) -> str:
    return (
        "You are a helpful AI health assistant. Provide accurate, helpful, and safe health information.\n"
        "Remember: You cannot diagnose, prescribe, or replace professional medical advice.\n"
        "\n"
        f"User question: {message}\n"
        "\n"
        "Provide a helpful response that:\n"
        "1. Addresses the user's question\n"
        "2. Provides general health information\n"
        "3. Encourages professional consultation when appropriate\n"
        "4. Is clear and easy to understand\n"
    )
