"""Prompt templates for grounded answers and symptom-based diagnosis."""

from __future__ import annotations

from typing import Sequence

NO_DOCUMENTS_MESSAGE = (
    "I don't have any documents to reference yet. Please upload a PDF document "
    "first so I can help answer your questions."
)

INSUFFICIENT_INFORMATION_MESSAGE = (
    "I don't have enough information in the uploaded documents to answer this "
    "question. Please make sure you've uploaded relevant documents."
)

_ANSWER_TEMPLATE = """\
You are a helpful AI assistant specialized in livestock health and veterinary care. \
Use the provided context to answer the user's question accurately and concisely.

Context from documents:
{context}

User Question: {question}

Instructions:
- Answer based ONLY on the information provided in the context above
- If the context doesn't contain enough information to answer the question, say so clearly
- Be specific and cite relevant details from the context
- Keep your answer clear and practical for farmers
- If discussing medications or treatments, emphasize consulting a veterinarian for specific cases

Answer:"""

_ANSWER_FALLBACK_TEMPLATE = """\
Answer this question based on the context.

Context: {context}

Question: {question}

Answer:"""

_DIAGNOSTIC_QUERY_TEMPLATE = """\
A cattle is showing these symptoms:
{symptoms}

What disease does it likely have?"""

_DIAGNOSIS_TEMPLATE = """\
You are a veterinary AI assistant specializing in livestock health. \
Based on the medical knowledge provided, diagnose the most likely disease.

Medical Knowledge Base:
{context}

Patient Symptoms:
{symptoms}

Provide a diagnosis in EXACTLY this format:
DISEASE: [specific disease name]
CONFIDENCE: [High/Medium/Low]
EXPLANATION: [2-3 sentences explaining why these symptoms match this disease]
TREATMENT: [primary treatment approach or medicine category]

Be specific with the disease name. Use medical terminology where appropriate."""

_DIAGNOSIS_FALLBACK_TEMPLATE = """\
Based on these livestock symptoms: {symptoms}

Diagnose the disease and provide treatment.

DISEASE:"""


def symptom_bullets(symptoms: Sequence[str]) -> str:
    return "\n".join(f"- {s}" for s in symptoms)


def build_answer_prompt(question: str, context_texts: Sequence[str]) -> str:
    """Grounded Q&A prompt with numbered ``[Context N]`` blocks."""
    context = "\n\n".join(
        f"[Context {i + 1}]\n{text}" for i, text in enumerate(context_texts)
    )
    return _ANSWER_TEMPLATE.format(context=context, question=question)


def build_answer_fallback_prompt(question: str, context_texts: Sequence[str]) -> str:
    """Shorter prompt for the fallback model: flattened context, no instructions."""
    return _ANSWER_FALLBACK_TEMPLATE.format(
        context=" ".join(context_texts), question=question
    )


def build_diagnostic_query(symptoms: Sequence[str]) -> str:
    """Retrieval query embedded to find relevant medical references."""
    return _DIAGNOSTIC_QUERY_TEMPLATE.format(symptoms=symptom_bullets(symptoms))


def build_diagnosis_prompt(symptoms: Sequence[str], context_texts: Sequence[str]) -> str:
    context = "\n\n".join(
        f"[Medical Reference {i + 1}]\n{text}" for i, text in enumerate(context_texts)
    )
    return _DIAGNOSIS_TEMPLATE.format(context=context, symptoms=symptom_bullets(symptoms))


def build_diagnosis_fallback_prompt(symptoms: Sequence[str]) -> str:
    return _DIAGNOSIS_FALLBACK_TEMPLATE.format(symptoms=", ".join(symptoms))
