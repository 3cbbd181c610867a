"""PDF -> multiple-choice question bank extraction feature module.

Splits an uploaded PDF into page chunks, extracts MCQs from each chunk with Gemini,
and stores the normalized questions (plus optional page images) for human review.
"""
