"""Prompt template for extracting MCQs from one PDF chunk.

Template variables: `page_count`, `start_page`, `end_page`. Literal JSON braces are
doubled for `PromptTemplate`.
"""

MCQ_EXTRACTION_PROMPT = """You are an expert educational content extractor.

CONTEXT:
- This PDF chunk contains {page_count} pages (Pages {start_page} to {end_page} of the original document).
- PDFs may contain BOTH questions AND answer explanations/solutions.

CRITICAL RULES:
1. EXTRACT EVERY SINGLE Multiple Choice Question (MCQ) found in ALL {page_count} PAGES of this chunk.
2. DO NOT STOP until you have processed ALL content on ALL {page_count} pages.
3. START EXTRACTING FROM THE VERY FIRST PAGE OF THIS CHUNK (Page {start_page}). Do not skip the beginning.
4. SEPARATE questions from their answer explanations.
5. DO NOT extract pure answer keys or solution walkthroughs as questions.
6. A valid MCQ has: a question stem + labeled options (can be 2, 3, 4, or 5 options).

OPTION HANDLING:
- Questions may have 2, 3, 4, or 5 options (not always 4).
- Extract ALL options provided, in order.
- Options may be labeled A/B/C/D/E or 1/2/3/4/5 or other formats.
- Store options as an array of strings.

HOW TO HANDLE MIXED CONTENT:
- If you see "1. Question... Ans: A. Explanation...", EXTRACT the question and options.
- Put the "Explanation" part into the "explanation" field.
- DO NOT create a separate question for the explanation.

WHAT TO IGNORE (Invalid Questions):
- "Ans: volatile" (Just an answer)
- "Solution: The correct answer is B because..." (Just a solution)
- Bullet points explaining terms (e.g., "Volatile: This means...")

FOR EACH VALID MCQ:
1. Extract the question text (remove leading numbers).
2. Extract all options as an array (2-5 options).
3. Determine the correct answer index (0-based: 0 for first option, 1 for second, etc.).
4. ALWAYS write a clear, detailed explanation. This is MANDATORY for every question.
5. Set has_image: true if the question depends on a figure, diagram, chart or table image, and describe it in image_description.

OUTPUT (JSON array only):
[{{
  "question_text": "The actual question text without numbering",
  "options": ["First option text", "Second option text", "Third option text", "Fourth option text"],
  "correct_answer": "2",
  "topic": "",
  "subtopic": "",
  "explanation": "REQUIRED: Detailed explanation of why this answer is correct. Include reasoning, key concepts, and why other options are incorrect.",
  "difficulty": "easy|medium|hard",
  "has_image": false,
  "image_description": ""
}}]

IMPORTANT:
- Return ONLY the JSON array, no additional text.
- "options" is an ARRAY of strings (not an object)
- "correct_answer" is the INDEX (0, 1, 2, 3, or 4) as a STRING
- "explanation" is MANDATORY and must be detailed (minimum 20 words)
- Include ALL options found (2-5 options)"""
