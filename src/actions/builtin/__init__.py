"""
Built-in action library.

Every handler is a plain ``func(item, config) -> dict`` registered under the
handler key referenced by Action rows.
"""

from . import diy, general, political, printing, smarthome, sports, tech


# (handler_key, func, description, config_schema)
BUILTIN_ACTIONS = [
    ("general.summarize", general.summarize,
     "Generate basic summary and extract key points",
     {"max_sentences": "positive_int", "max_keywords": "positive_int", "max_chars": "positive_int"}),
    ("general.extractKeywords", general.keywords,
     "Extract important keywords and topics",
     {"max_keywords": "positive_int"}),
    ("general.calculateReadingTime", general.reading_time,
     "Calculate estimated reading time",
     {"words_per_minute": "positive_number"}),
    ("tech.extractTrends", tech.extract_trends,
     "Extract technology trends and innovations mentioned", {}),
    ("tech.analyzeTechnicalDepth", tech.technical_depth,
     "Assess technical complexity and depth of content", {}),
    ("tech.extractToolsTech", tech.tools_and_technologies,
     "Identify tools, frameworks, and technologies mentioned", {}),
    ("sports.extractStats", sports.extract_stats,
     "Extract game statistics, scores, and player data", {}),
    ("sports.identifyTeamsPlayers", sports.teams_and_players,
     "Identify teams, players, and key figures",
     {"max_players": "positive_int"}),
    ("printing.extractSettings", printing.extract_settings,
     "Extract 3D printing parameters and model metadata", {}),
    ("printing.classifyModel", printing.classify_model,
     "Classify 3D model type (functional, decorative, etc.)", {}),
    ("printing.extractFileInfo", printing.extract_file_info,
     "Extract download links and file information", {}),
    ("diy.extractProjectDetails", diy.project_details,
     "Extract DIY project details and components", {}),
    ("diy.identifyComponents", diy.components,
     "Identify electronic components and tools needed", {}),
    ("smarthome.extractDevices", smarthome.extract_devices,
     "Identify smart home devices and integrations", {}),
    ("smarthome.extractAutomation", smarthome.extract_automation,
     "Extract automation rules and logic",
     {"max_rules": "positive_int"}),
    ("political.detectLoadedLanguage", political.detect_loaded_language,
     "Identify emotionally charged or manipulative language", {}),
    ("political.assessCredibility", political.assess_credibility,
     "Assess source credibility and reputation", {}),
]


def register_builtin_actions(registry) -> None:
    """Register the built-in action library on an ActionRegistry."""
    for handler_key, func, description, config_schema in BUILTIN_ACTIONS:
        registry.register_function(
            handler_key, func, description=description, config_schema=config_schema
        )
