"""Function-calling schema declared to the completion endpoint.

The backend may answer with free text or invoke one of these operations.
Argument names are camelCase because they are parsed straight into the
wire-facing pydantic models.
"""

from typing import Any

PROPOSE_CHANGES = "propose_changes"
CHAT_ONLY = "chat_only"
ANALYZE_PROGRESS = "analyze_progress"

_PRIORITY = {"type": "string", "enum": ["high", "medium", "low"]}

COACH_FUNCTIONS: list[dict[str, Any]] = [
    {
        "name": PROPOSE_CHANGES,
        "description": "Propose changes to the user's training or nutrition plan",
        "parameters": {
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": "Friendly conversational reply explaining the proposal",
                },
                "changeType": {
                    "type": "string",
                    "enum": [
                        "exercise_replacement",
                        "workout_modification",
                        "nutrition_adjustment",
                        "progress_analysis",
                    ],
                    "description": "Kind of change being proposed",
                },
                "priority": {**_PRIORITY, "description": "Priority of the proposed change"},
                "proposal": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string", "description": "Short title of the change"},
                        "description": {"type": "string", "description": "What will change"},
                        "reasoning": {"type": "string", "description": "Why the change benefits the user"},
                        "changes": {
                            "type": "object",
                            "description": (
                                "Change payload. exercise_replacement: exerciseId and newExercise "
                                "(name, description, sets, reps). workout_modification: workoutChanges. "
                                "nutrition_adjustment: goals and/or weeklyPlan."
                            ),
                            "properties": {
                                "exerciseId": {
                                    "type": "string",
                                    "description": "Id of the exercise to replace, taken from AVAILABLE EXERCISES",
                                },
                                "oldExercise": {"type": "string", "description": "Name of the exercise to replace"},
                                "newExercise": {
                                    "type": "object",
                                    "properties": {
                                        "name": {"type": "string"},
                                        "description": {"type": "string"},
                                        "sets": {"type": "number"},
                                        "reps": {"type": "string"},
                                        "videoUrl": {"type": "string"},
                                        "tips": {"type": "array", "items": {"type": "string"}},
                                        "targetMuscles": {"type": "array", "items": {"type": "string"}},
                                    },
                                },
                                "workoutChanges": {"type": "object", "description": "Fields to merge onto the program"},
                                "goals": {"type": "object", "description": "Updated nutrition goals"},
                                "weeklyPlan": {"type": "object", "description": "Updated weekly meal plan"},
                            },
                        },
                    },
                    "required": ["title", "description", "reasoning", "changes"],
                },
            },
            "required": ["message", "changeType", "priority", "proposal"],
        },
    },
    {
        "name": CHAT_ONLY,
        "description": "Conversation only, without proposing plan changes",
        "parameters": {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "Reply as an expert personal trainer"},
            },
            "required": ["message"],
        },
    },
    {
        "name": ANALYZE_PROGRESS,
        "description": "Analyze the user's progress and give personalized recommendations",
        "parameters": {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "Conversational summary of the analysis"},
                "analysis": {
                    "type": "object",
                    "properties": {
                        "progressStatus": {
                            "type": "string",
                            "enum": ["excellent", "good", "stagnant", "declining"],
                        },
                        "keyFindings": {"type": "array", "items": {"type": "string"}},
                        "concerns": {"type": "array", "items": {"type": "string"}},
                        "achievements": {"type": "array", "items": {"type": "string"}},
                    },
                    "required": ["progressStatus", "keyFindings", "achievements"],
                },
                "recommendations": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "type": {
                                "type": "string",
                                "enum": ["workout_adjustment", "nutrition_change", "rest_modification"],
                            },
                            "priority": _PRIORITY,
                            "title": {"type": "string"},
                            "description": {"type": "string"},
                        },
                        "required": ["type", "priority", "title", "description"],
                    },
                },
            },
            "required": ["message", "analysis"],
        },
    },
]


def force_function(name: str) -> dict[str, str]:
    """Build a ``function_call`` value that forces a specific operation."""
    return {"name": name}
