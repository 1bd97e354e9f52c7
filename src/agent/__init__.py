"""
agent - Conversational orchestration layer.

Contains the chat turn state machine, history projection, the persona
prompt, and the tool catalog with its providers.
Depends on domain/ and application/. Never imports from infrastructure/.
"""
