"""Server-rendered viewer UI.

- served by the FastAPI app, no runtime Node dependency
- a single HTML form posting to /fetch
- Tailwind and highlight.js are pulled from their CDNs by the browser
"""
