"""Health check endpoint."""

from http.server import BaseHTTPRequestHandler
import json

SERVICE_NAME = "izibrokerz-core"


class handler(BaseHTTPRequestHandler):
    """Health check handler for Vercel serverless function."""

    def do_GET(self):
        """Handle GET request."""
        self.send_response(200)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
        response = json.dumps({"status": "ok", "service": SERVICE_NAME})
        self.wfile.write(response.encode('utf-8'))

    def do_HEAD(self):
        """Handle HEAD request (uptime probes)."""
        self.send_response(200)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
