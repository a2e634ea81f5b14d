"""AI assistant: chat sessions, the streaming tool loop and turn assembly."""
