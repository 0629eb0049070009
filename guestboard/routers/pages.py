"""
Pages router - the wall display.
"""
from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"])

# Polls /api/stats once a minute and shows a dash when the call fails
INDEX_HTML = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Статистика</title>
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
      background: #000;
      color: #fff;
      font-family: -apple-system, BlinkMacSystemFont, sans-serif;
      height: 100vh;
      display: flex;
      flex-direction: column;
      justify-content: center;
      align-items: center;
      padding: 20px;
    }
    .numbers { display: flex; flex-direction: column; align-items: center; text-align: center; }
    .number {
      font-size: min(20vw, 20vh);
      font-weight: 800;
      line-height: 1.1;
      text-shadow: 0 0 10px rgba(255,255,255,0.3);
    }
    .label { font-size: min(5vw, 5vh); opacity: 0.7; margin-top: 8px; }
  </style>
</head>
<body>
  <div class="numbers">
    <div class="number" id="inside">--</div>
    <div class="label">в зале</div>
    <div class="number" id="waiting">--</div>
    <div class="label">ожидают</div>
    <div class="number" id="total">--</div>
    <div class="label">всего</div>
  </div>
  <script>
    const FIELDS = ['inside', 'waiting', 'total'];
    function show(data) {
      for (const field of FIELDS) {
        document.getElementById(field).textContent = data ? (data[field] || 0) : '—';
      }
    }
    async function fetchStats() {
      try {
        const res = await fetch('/api/stats');
        const data = await res.json();
        show(data.error ? null : data);
      } catch (err) {
        show(null);
      }
    }
    fetchStats();
    setInterval(fetchStats, 60000);
  </script>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    """Full-screen page with the current counters."""
    return HTMLResponse(INDEX_HTML)
