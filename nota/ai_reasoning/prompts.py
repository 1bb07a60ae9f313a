LIVE_INSIGHT_PROMPT = """
Meeting analysis (JSON only, respond in {language}):
{{
  "topic": "main topic (3 words in {language})",
  "points": ["key1", "key2"],
  "actions": ["action1", "action2"],
  "mood": "positive/neutral/negative",
  "keywords": ["keyword1", "keyword2", "keyword3"]
}}

Note: Text may contain multiple languages. Analyze and respond in {language}.

Text: {transcript}
"""


FINAL_ANALYSIS_PROMPT = """
Analyze this meeting/conversation and provide structured insights in JSON format.

IMPORTANT: The transcript may contain multiple languages.
- Analyze the content in whatever languages are present
- Provide ALL responses in {language} ({code})
- Translate any non-{language} content to {language} in your analysis
- Preserve the original meaning and context when translating

{{
  "summary": "1-2 paragraph summary of the main discussion (in {language})",
  "action_items": [
    {{
      "task": "Specific action to take (in {language})",
      "assignee": "Person responsible (if mentioned)",
      "deadline": "Timeframe (if mentioned)",
      "priority": "high/medium/low"
    }}
  ],
  "key_insights": ["Important insight or observation (in {language})"],
  "topics_discussed": ["topic1", "topic2", "topic3"],
  "decisions_made": ["decision1", "decision2"],
  "questions_raised": ["question1", "question2"],
  "sentiment": "overall mood: positive/neutral/negative/mixed",
  "keywords": ["keyword1", "keyword2", "keyword3", "keyword4", "keyword5"],
  "languages_detected": ["list of languages spoken in the meeting"],
  "meeting_type": "standup/planning/review/sales/support/interview/other"
}}

Transcript (may contain multiple languages):
{transcript}
"""
