"""
SkillGate errors
"""


class SkillGateError(Exception):
    """Base class for SkillGate errors"""


class ToolServerUnavailableError(SkillGateError):
    """Raised when no configured tool-server contributes any tool."""

    def __init__(self, servers):
        self.servers = list(servers)
        super().__init__(
            f"All tool-servers are unavailable: {', '.join(self.servers) or '(none configured)'}"
        )


class SkillNotFoundError(SkillGateError):
    """Raised when a skill name cannot be resolved and no fallback skill exists."""

    def __init__(self, skill_name: str):
        self.skill_name = skill_name
        super().__init__(f"Unknown skill '{skill_name}' and no fallback skill is configured")
