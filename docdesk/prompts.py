"""Prompt templates and fixed assistant replies."""

from __future__ import annotations

from langchain_core.prompts import ChatPromptTemplate

ANSWER_SYSTEM_PROMPT = """You are a helpful assistant that answers questions about the user's uploaded documents.

## Rules
1. Answer based ONLY on the information in the document context below.
2. If information comes from more than one document, say which document each piece comes from.
3. If the context does not contain the answer, say so clearly instead of guessing.
4. Be specific and accurate; never mix up facts from different documents.
5. Keep answers concise but informative.
6. If the user asks about appointments, tell them they can say "book appointment" to schedule one.
"""

ANSWER_HUMAN_PROMPT = """## Document context
{context}

## Question
{question}

Answer:"""

ANSWER_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", ANSWER_SYSTEM_PROMPT),
        ("human", ANSWER_HUMAN_PROMPT),
    ]
)

ANSWER_FAILURE_REPLY = (
    "I apologize, but I encountered an error while processing your question. "
    "Please try again."
)

NO_RESULTS_REPLY = """I couldn't find specific information about "{query}" in your uploaded documents. You can:

• Upload more documents for me to search through
• Ask a question using different words
• Book an appointment by saying "book appointment"

What would you like to do?"""

TURN_FAILURE_REPLY = "I apologize, but I encountered an error. Please try again."

# ── Booking dialogue ─────────────────────────────────────────────────

BOOKING_CANCELLED_REPLY = """No problem! I've cancelled the appointment booking. How can I help you today? You can:

• Ask questions about your documents
• Say "book appointment" to start a new booking
• Upload new documents

What would you like to do?"""

BOOKING_START_REPLY = (
    "I'd be happy to help you schedule an appointment! Let me collect a few details.\n\n"
    "First, could you please tell me your full name?\n\n"
    "(You can say 'cancel' at any time to stop the booking.)"
)

ASK_EMAIL = "Thank you, {name}! Now, could you please provide your email address?"
ASK_PHONE = "Great! Now, please provide your phone number (with country code if international)."
ASK_DATE = (
    "Perfect! When would you like the appointment? You can say things like "
    "'tomorrow', 'next Monday', 'in 3 days', or give a date such as 2025-01-15."
)
ASK_TIME = "Great, {date} it is. What time would you prefer? (e.g. 14:30, 2:30 PM or 5 PM)"
ASK_PURPOSE = (
    "Excellent! Finally, could you briefly describe the purpose of your appointment? "
    "(Optional: you can just say 'general consultation'.)"
)

INVALID_NAME = "Please provide a valid name with at least 2 characters."
INVALID_EMAIL = "Please provide a valid email address (e.g., john@example.com)."
INVALID_PHONE = (
    "Please provide a valid phone number (digits only, with an optional + for the country code)."
)
INVALID_DATE = (
    "I couldn't understand that date. Please try 'tomorrow', 'next Monday', "
    "or a date like 2025-01-15."
)
PAST_DATE = "Please choose a date that is not in the past."
INVALID_TIME = "Please provide a valid time. Examples: '5 PM', '5:30 PM', '17:00', '14:30'."

BOOKING_CONFIRMED_REPLY = """Perfect! Your appointment request has been booked:

**Appointment details**
• Name: {name}
• Email: {email}
• Phone: {phone}
• Date: {date}
• Time: {time} (UTC)
• Purpose: {purpose}

Is there anything else I can help you with?"""

BOOKING_FAILED_REPLY = (
    "I apologize, but there was an error booking your appointment. "
    "Please say 'book appointment' to try again."
)
