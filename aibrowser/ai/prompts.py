CHAT = "chat"
SEARCH = "search"
EXPLAIN = "explain"
ASK = "ask"
COMPARE = "compare"
CODE = "code"
RESEARCH = "research"

MODES = (CHAT, SEARCH, EXPLAIN, ASK, COMPARE, CODE, RESEARCH)

MODELS = [
    {"id": "anthropic/claude-3.5-sonnet", "name": "Claude 3.5 Sonnet", "provider": "Anthropic", "context_window": 200000},
    {"id": "anthropic/claude-3-opus", "name": "Claude 3 Opus", "provider": "Anthropic", "context_window": 200000},
    {"id": "openai/gpt-4-turbo", "name": "GPT-4 Turbo", "provider": "OpenAI", "context_window": 128000},
    {"id": "openai/gpt-4", "name": "GPT-4", "provider": "OpenAI", "context_window": 8192},
    {"id": "google/gemini-pro-1.5", "name": "Gemini Pro 1.5", "provider": "Google", "context_window": 1000000},
    {"id": "meta-llama/llama-3.1-70b-instruct", "name": "Llama 3.1 70B", "provider": "Meta", "context_window": 8192},
    {"id": "mistralai/mistral-large", "name": "Mistral Large", "provider": "Mistral", "context_window": 32000},
    {"id": "deepseek/deepseek-chat", "name": "DeepSeek Chat", "provider": "DeepSeek", "context_window": 64000},
]


def search(query: str) -> str:
    return f"Search the web for: {query}. Provide a comprehensive answer with sources."


def explain(page_content: str) -> str:
    return f"Explain this web page in simple terms:\n\n{page_content}"


def ask(question: str, page_content: str) -> str:
    return f"Based on this web page:\n\n{page_content}\n\nAnswer this question: {question}"


def compare(first: str, second: str) -> str:
    return f"Compare these two web pages:\n\nPage 1:\n{first}\n\nPage 2:\n{second}"


def code(request: str) -> str:
    return f"Act as a coding assistant. {request}"


def research(topic: str) -> str:
    return f"Provide a structured research summary on: {topic}. Include key points, sources, and analysis."
