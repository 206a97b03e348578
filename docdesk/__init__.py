"""DocDesk Assistant — document question answering plus in-chat booking.

Architecture Overview
=====================

Every chat message enters the **conversation state machine**
(``docdesk.dialogue.machine``), a LangGraph StateGraph that loads the
session from the durable store and routes the message:

1. **cancel** — a cancellation keyword while a booking is in progress
   resets the session to ``chat`` and discards the draft.
2. **start_booking** — a booking keyword while chatting starts collecting
   name → email → phone → date → time → purpose.
3. **collect** — any other message mid-booking goes to the handler for the
   current field; invalid input re-prompts without advancing.
4. **answer** — everything else is a document question: hybrid retrieval
   followed by grounded generation with Claude.

Key Design Decisions
--------------------
- **Hybrid retrieval**: cosine similarity over chunk embeddings where they
  exist, literal keyword scoring everywhere else, merged per document.
- **Non-blocking uploads**: uploads are chunked and keyword-searchable at
  once; a worker pool computes embeddings in the background and swaps
  them into the in-memory index.
- **Explicit state**: the dialogue state is a closed enum persisted with
  the draft and message log after every turn.
- **Dual interface**: FastAPI server (production) + CLI chat loop.

Package Structure
-----------------
- ``docdesk/config.py`` — Centralized configuration from environment variables
- ``docdesk/models.py`` — Domain models
- ``docdesk/prompts.py`` — Grounding prompt and assistant replies
- ``docdesk/retrieval/`` — Chunker, index, hybrid retriever, embedding scheduler
- ``docdesk/dialogue/`` — State machine, date/time parsing, validators
- ``docdesk/services/`` — External clients, repositories, application services
- ``docdesk/api/`` — FastAPI routes and Pydantic schemas
- ``docdesk/server.py`` — FastAPI application
- ``docdesk/main.py`` — CLI chat interface
"""
