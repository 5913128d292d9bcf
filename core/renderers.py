"""
Core — Response Renderer

Successful responses are wrapped as
  { "success": true, "data": ..., "meta": {...} }
Error bodies are already enveloped by core.exceptions and pass through.

@file core/renderers.py
"""

from rest_framework.renderers import JSONRenderer

PAGE_META_KEYS = ('count', 'page', 'page_size', 'next', 'previous')


class StandardJSONRenderer(JSONRenderer):

    def render(self, data, accepted_media_type=None, renderer_context=None):
        response = renderer_context.get('response') if renderer_context else None

        if response is not None and response.status_code >= 400:
            return super().render(data, accepted_media_type, renderer_context)
        if isinstance(data, dict) and 'success' in data:
            return super().render(data, accepted_media_type, renderer_context)

        if isinstance(data, dict) and 'results' in data:
            envelope = {
                'success': True,
                'data': data['results'],
                'meta': {key: data.get(key) for key in PAGE_META_KEYS},
            }
        else:
            envelope = {'success': True, 'data': data}
        return super().render(envelope, accepted_media_type, renderer_context)
