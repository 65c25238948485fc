"""Prompt template for the Gemini CV optimization call."""

DEFAULT_JOB_ROLE = "Not specified"


def build_optimize_prompt(resume_text: str, job_description: str, job_role: str = "") -> str:
    """Single combined prompt asking for the StructuredResume JSON only.

    The job role, job description and resume are embedded verbatim.
    """
    job_role = job_role.strip() or DEFAULT_JOB_ROLE

    return f"""You are an expert CV/resume optimizer. Your task is to:
1. Analyze the provided resume and job description
2. Optimize the resume to highlight relevant skills and experiences for the job
3. Calculate a job match score (0-100)
4. Return a well-structured CV in JSON format

Return ONLY valid JSON with this exact structure:
{{
  "header": {{
    "name": "Full Name",
    "contact": "email@example.com | phone | location"
  }},
  "summary": "Professional summary optimized for the target role",
  "skills": ["skill1", "skill2", "skill3"],
  "experience": [
    {{
      "title": "Job Title",
      "company": "Company Name",
      "period": "Jan 2020 - Present",
      "highlights": ["Achievement 1", "Achievement 2"]
    }}
  ],
  "education": [
    {{
      "degree": "Degree Name",
      "institution": "University Name",
      "year": "2020"
    }}
  ],
  "matchScore": 85
}}

Target Job Role: {job_role}

Job Description:
{job_description}

Current Resume:
{resume_text}

Please optimize this resume for the target job and return the structured JSON response."""
