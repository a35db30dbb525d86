"""
Services package for the Learning State Tutor.

- Tutor chat: Azure AI Foundry chat completions adapted to the student's learning state
"""
