# system_prompt.py

# Assessment tiers for the match score (>= 75, >= 50, below 50)
STRONG_FIT_ASSESSMENT = (
    "This candidate is an excellent match for the role, with strong alignment "
    "between their skills and the job requirements."
)

MODERATE_FIT_ASSESSMENT = (
    "This candidate shows moderate fit for the role. They have some key "
    "qualifications but are missing some important skills."
)

POOR_FIT_ASSESSMENT = (
    "This candidate may not be the best fit for this role. There are significant "
    "gaps between their experience and the job requirements."
)

STRENGTH_TEMPLATE = "Experience with {keyword}"
GAP_TEMPLATE = "No mention of {keyword}"

# Chat answer templates
DEGREE_FOUND_ANSWER = 'Yes, the candidate has education credentials. Specifically: "{degree}".'
NO_DEGREE_ANSWER = "No explicit degree information found in the resume."

EXPERIENCE_FOUND_ANSWER = "The candidate has {years} years of experience with {field}."
EXPERIENCE_YEARS_ANSWER = "The candidate has {years} years of experience."
EXPERIENCE_GENERIC_ANSWER = (
    "Experience details are available in the resume. "
    "Based on the background provided."
)

CONTEXT_ANSWER = (
    "Based on the resume information: {context}... "
    "This relates to your question about the candidate's qualifications."
)

NO_CONTEXT_ANSWER = (
    "Based on the resume and job description analysis, I cannot find specific "
    "information to directly answer that question. Try asking about the "
    "candidate's education, experience, or a skill from the job description."
)

ANSWER_CONTEXT_PREVIEW = 200
