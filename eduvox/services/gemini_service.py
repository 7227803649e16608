"""Single-shot Gemini text generation."""

from google.genai import types


class GenerationUnavailableError(RuntimeError):
    pass


class PathwayGenerationError(RuntimeError):
    pass


def build_generation_config(max_output_tokens=8192, thinking_budget=256, temperature=0.7):
    base_config = {'max_output_tokens': max_output_tokens, 'temperature': temperature}
    if hasattr(types, 'ThinkingConfig'):
        base_config['thinking_config'] = types.ThinkingConfig(thinking_budget=thinking_budget)
    try:
        return types.GenerateContentConfig(**base_config)
    except Exception:
        return types.GenerateContentConfig(max_output_tokens=max_output_tokens)


def generate_text(client, model, prompt_text, *, max_output_tokens=8192, thinking_budget=256):
    """Return the raw response text for one prompt.

    No retry here; callers surface failures to the user, who re-triggers.
    """
    if client is None:
        raise GenerationUnavailableError('AI generation is not configured on this server')
    try:
        response = client.models.generate_content(
            model=model,
            contents=[types.Content(role='user', parts=[types.Part.from_text(text=prompt_text)])],
            config=build_generation_config(max_output_tokens=max_output_tokens, thinking_budget=thinking_budget),
        )
    except Exception as exc:
        raise PathwayGenerationError(f"Gemini request failed: {exc}") from exc
    return getattr(response, 'text', None) or ''
