SCRIPT_LINE_SCHEMA = {
    "type": "object",
    "properties": {
        "speaker": {"type": "string"},
        "text": {"type": "string"},
        "mood": {"type": "string"},
        "voiceName": {"type": "string"},
        "voiceStyle": {"type": "string"},
        "pause": {"type": "integer"}
    },
    "required": ["speaker", "text"]
}

GEMINI_TIMELINE_RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "title": {"type": "string"},
        "estimatedDuration": {"type": "number"},
        "blocks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": ["talk", "music", "music_control", "silence"]},
                    "id": {"type": "string"},
                    "scripts": {"type": "array", "items": SCRIPT_LINE_SCHEMA},
                    "backgroundMusic": {
                        "type": "object",
                        "properties": {
                            "action": {"type": "string", "enum": ["continue", "fade", "pause"]},
                            "volume": {"type": "number"}
                        },
                        "required": ["action"]
                    },
                    "search": {"type": "string"},
                    "duration": {"type": "number"},
                    "fadeIn": {"type": "integer"},
                    "intro": SCRIPT_LINE_SCHEMA,
                    "action": {"type": "string"},
                    "fadeDuration": {"type": "integer"},
                    "targetVolume": {"type": "number"}
                },
                "required": ["type"]
            }
        }
    },
    "required": ["title", "estimatedDuration", "blocks"]
}

TIMELINE_FORMAT_INSTRUCTIONS = """Respond with a single JSON object:
{
  "title": "episode title",
  "estimatedDuration": <seconds>,
  "blocks": [
    {"type": "talk", "scripts": [{"speaker": "host1", "text": "...", "mood": "warm"}],
     "backgroundMusic": {"action": "fade", "volume": 0.2}},
    {"type": "music", "search": "<song or artist>", "duration": 60,
     "intro": {"speaker": "host2", "text": "..."}},
    {"type": "music_control", "action": "fade_out", "fadeDuration": 2000},
    {"type": "silence", "duration": 800}
  ]
}
Speakers: host1, host2, guest, news. Moods: cheerful, calm, excited, serious, warm, playful, melancholy, mysterious."""
