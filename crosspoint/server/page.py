"""Single-page browser UI served at ``/``; it polls the JSON endpoints."""

from __future__ import annotations

from crosspoint.constants.about import APP_NAME
from crosspoint.constants.ui_constants import EMPTY_FEED_MESSAGE, LOADING_MESSAGE
from crosspoint.core.markdown_renderer import MATHJAX_SCRIPT

_PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>__APP_NAME__</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
      :root { font-family: 'Inter', system-ui, sans-serif; background: #f9fafb; color: #1f2937; }
      body { margin: 0; }
      header { background: #fff; box-shadow: 0 2px 6px rgba(0,0,0,0.08); padding: 1rem 1.5rem; display: flex; justify-content: space-between; align-items: center; position: sticky; top: 0; }
      header h1 { margin: 0; font-size: 1.8rem; color: #4338ca; }
      header h1 span { color: #6366f1; }
      main { max-width: 70rem; margin: 0 auto; padding: 1.5rem; }
      .hidden { display: none !important; }
      .card { background: #fff; border-radius: 0.75rem; padding: 1.25rem; box-shadow: 0 0.25rem 1rem rgba(0,0,0,0.08); }
      .grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(18rem, 1fr)); gap: 1rem; }
      .pill { font-size: 0.75rem; font-weight: 600; padding: 0.2rem 0.6rem; border-radius: 999px; background: #e0e7ff; color: #4338ca; }
      .status-Open { background: #fee2e2; color: #dc2626; }
      .status-Closed { background: #dcfce7; color: #16a34a; }
      .badge { color: #16a34a; background: #f0fdf4; border-radius: 999px; padding: 0.25rem 0.75rem; font-size: 0.85rem; }
      button { border: none; border-radius: 0.5rem; padding: 0.6rem 1.1rem; font-size: 0.95rem; cursor: pointer; background: #4f46e5; color: #fff; }
      button.secondary { background: transparent; color: #4f46e5; }
      button.answer { background: #22c55e; }
      button:disabled { opacity: 0.5; cursor: not-allowed; }
      .banner { background: #fef3c7; border-left: 4px solid #f59e0b; padding: 0.75rem 1rem; border-radius: 0.5rem; margin-bottom: 1rem; display: flex; justify-content: space-between; }
      .fatal { max-width: 36rem; margin: 4rem auto; border-left: 4px solid #ef4444; }
      .option { border: 1px solid #e5e7eb; border-radius: 0.5rem; padding: 0.9rem; margin-bottom: 0.5rem; cursor: pointer; background: #fff; }
      .option.selected { background: #e0e7ff; border-color: #6366f1; font-weight: 600; }
      .option.correct { background: #dcfce7; border-color: #22c55e; font-weight: 700; }
      .option.wrong { background: #fee2e2; border-color: #ef4444; font-weight: 700; }
      .option.dim { opacity: 0.5; }
      label { display: block; font-size: 0.9rem; font-weight: 600; margin-top: 0.75rem; }
      input, textarea, select { width: 100%; box-sizing: border-box; border: 1px solid #d1d5db; border-radius: 0.5rem; padding: 0.7rem; margin-top: 0.25rem; font: inherit; }
      .muted { color: #6b7280; font-size: 0.85rem; }
      .row { display: flex; justify-content: space-between; align-items: center; gap: 0.75rem; }
    </style>
    <script>
      window.MathJax = { tex: { inlineMath: [['$','$']], displayMath: [['$$','$$']] } };
    </script>
    <script defer src="__MATHJAX__"></script>
  </head>
  <body>
    <div id="loading" class="card fatal" style="border-left-color:#6366f1">__LOADING__</div>
    <div id="fatal" class="card fatal hidden">
      <h2 style="color:#b91c1c">Application Error</h2>
      <p id="fatal-message"></p>
      <p class="muted">Check the server log for details and error codes.</p>
    </div>
    <div id="app" class="hidden">
      <header>
        <h1><span>Cross</span>point</h1>
        <div class="row">
          <span id="expert-badge" class="badge hidden"></span>
          <span class="muted">ID: <code id="user-id"></code></span>
          <button id="take-quiz">Take Quiz</button>
          <button id="sign-out" class="secondary">Sign out</button>
        </div>
      </header>
      <main>
        <div id="banners"></div>
        <section id="view-feed" class="hidden">
          <div class="row" style="margin-bottom:1rem">
            <h2>Latest Questions</h2>
            <button id="ask">Ask a Question</button>
          </div>
          <div id="feed" class="grid"></div>
        </section>
        <section id="view-post" class="hidden card" style="max-width:36rem;margin:0 auto">
          <h2>Post a New Question</h2>
          <form id="post-form">
            <label for="title">Question Title (Summary)</label>
            <input id="title" placeholder="What is the difference between a mutex and a semaphore?" required />
            <label for="body">Detailed Question</label>
            <textarea id="body" rows="5" placeholder="Provide all necessary details and context for the experts..." required></textarea>
            <label for="category">Category</label>
            <select id="category"></select>
            <p id="post-error" class="muted" style="color:#dc2626"></p>
            <button id="post-submit" type="submit" style="width:100%">Submit Question</button>
          </form>
          <button class="secondary" data-view="feed" style="width:100%;margin-top:0.5rem">&larr; Cancel</button>
        </section>
        <section id="view-quiz" class="hidden card" style="max-width:40rem;margin:0 auto">
          <div id="quiz-categories"></div>
          <div id="quiz-active" class="hidden">
            <h2 id="quiz-title"></h2>
            <p id="quiz-progress" class="muted"></p>
            <p id="quiz-question" style="font-size:1.15rem;font-weight:600"></p>
            <div id="quiz-options"></div>
            <button id="quiz-next" style="width:100%"></button>
            <button id="quiz-cancel" class="secondary" style="width:100%;margin-top:0.5rem">Cancel Quiz</button>
          </div>
        </section>
      </main>
      <footer class="muted" style="text-align:center;padding:1rem">__APP_NAME__</footer>
    </div>
    <script>
      const $ = (id) => document.getElementById(id);
      let state = null;
      let quiz = null;
      let submitting = false;

      async function api(method, path, payload) {
        const options = { method, headers: { 'Content-Type': 'application/json' } };
        if (payload !== undefined) options.body = JSON.stringify(payload);
        const response = await fetch(path, options);
        const body = response.status === 204 ? null : await response.json();
        if (!response.ok) throw new Error((body && body.detail) || response.statusText);
        return body;
      }

      function show(el, visible) { el.classList.toggle('hidden', !visible); }

      function renderBanners() {
        const container = $('banners');
        container.innerHTML = '';
        const banners = state.banners || {};
        Object.keys(banners).forEach((area) => {
          const div = document.createElement('div');
          div.className = 'banner';
          div.textContent = banners[area];
          const close = document.createElement('button');
          close.className = 'secondary';
          close.textContent = 'Dismiss';
          close.onclick = () => api('DELETE', '/banners/' + area).then(refresh);
          div.appendChild(close);
          container.appendChild(div);
        });
        if (state.last_outcome) {
          const o = state.last_outcome;
          const div = document.createElement('div');
          div.className = 'banner';
          div.textContent = o.passed
            ? `You passed the ${o.category} quiz (${o.final_score}/${o.total}).`
            : `You scored ${o.final_score}/${o.total} in ${o.category}. Try again to get verified.`;
          container.appendChild(div);
        }
      }

      async function renderFeed() {
        const questions = await api('GET', '/questions');
        const feed = $('feed');
        feed.innerHTML = '';
        if (!questions.length) {
          feed.innerHTML = '<div class="card">__EMPTY_FEED__</div>';
          return;
        }
        questions.forEach((q) => {
          const card = document.createElement('div');
          card.className = 'card';
          card.innerHTML = `<div class="row"><span class="pill"></span><span class="pill status-${q.status}">${q.status}</span></div>
            <h3></h3><div class="body"></div>
            <div class="row"><span class="muted">Asked by: <b></b>...</span><span class="action"></span></div>`;
          card.querySelector('.pill').textContent = q.category;
          card.querySelector('h3').textContent = q.title;
          card.querySelector('.body').innerHTML = q.body_html;
          card.querySelector('b').textContent = q.author_id.substring(0, 8);
          const action = card.querySelector('.action');
          if (q.can_answer) {
            const btn = document.createElement('button');
            btn.className = 'answer';
            btn.textContent = 'Answer';
            btn.onclick = () => alert('Answering is coming soon: ' + q.title);
            action.appendChild(btn);
          } else {
            action.className = 'muted';
            action.textContent = 'Get Verified to Answer';
          }
          feed.appendChild(card);
        });
        if (window.MathJax && MathJax.typesetPromise) MathJax.typesetPromise([feed]);
      }

      function renderQuizCategories(data) {
        const container = $('quiz-categories');
        container.innerHTML = `<h2>Expert Verification Quiz</h2>
          <p>To become a verified expert, select a category and pass the quiz with a score of
          <b>${Math.round(data.passing_threshold * 100)}%</b> or higher.</p>`;
        data.categories.forEach((c) => {
          const row = document.createElement('div');
          row.className = 'row option';
          row.innerHTML = '<b></b><span></span>';
          row.querySelector('b').textContent = c.name;
          const slot = row.querySelector('span');
          if (c.verified) {
            slot.className = 'badge';
            slot.textContent = 'VERIFIED';
          } else {
            const btn = document.createElement('button');
            btn.textContent = 'Start Quiz';
            btn.onclick = () => api('POST', '/quiz/start', { category: c.name }).then(refresh);
            slot.appendChild(btn);
          }
          container.appendChild(row);
        });
        const back = document.createElement('button');
        back.className = 'secondary';
        back.textContent = '\\u2190 Back to Question Feed';
        back.onclick = () => setView('feed');
        container.appendChild(back);
      }

      function renderQuizSession(s) {
        $('quiz-title').textContent = s.category + ' Expert Quiz';
        $('quiz-progress').textContent = `Question ${s.index + 1} of ${s.total}`;
        $('quiz-question').textContent = s.question || '';
        const options = $('quiz-options');
        options.innerHTML = '';
        s.options.forEach((option) => {
          const div = document.createElement('div');
          div.className = 'option';
          if (s.revealed) {
            if (option === s.correct_answer) div.classList.add('correct');
            else if (option === s.selection) div.classList.add('wrong');
            else div.classList.add('dim');
          } else if (option === s.selection) {
            div.classList.add('selected');
          }
          div.textContent = option;
          div.onclick = () => { if (!s.revealed) api('POST', '/quiz/select', { option }).then(refresh); };
          options.appendChild(div);
        });
        const next = $('quiz-next');
        next.textContent = s.is_last_question ? 'Submit Quiz' : 'Next Question';
        next.disabled = !s.selection || s.revealed || submitting;
      }

      async function renderQuiz() {
        quiz = await api('GET', '/quiz');
        const active = quiz.session && (quiz.session.phase === 'answering' || quiz.session.phase === 'advancing');
        show($('quiz-categories'), !active);
        show($('quiz-active'), !!active);
        if (active) renderQuizSession(quiz.session);
        else renderQuizCategories(quiz);
      }

      async function setView(view) {
        await api('POST', '/view', { view });
        await refresh();
      }

      async function refresh() {
        try {
          state = await api('GET', '/state');
        } catch (error) {
          return;
        }
        show($('loading'), state.screen === 'loading');
        show($('fatal'), state.screen === 'error');
        show($('app'), ['feed', 'post', 'quiz'].includes(state.screen));
        if (state.screen === 'error') { $('fatal-message').textContent = state.error; return; }
        if (state.screen === 'loading') return;
        $('user-id').textContent = state.identity ? state.identity.user_id : 'Loading...';
        const badge = $('expert-badge');
        show(badge, state.verified_categories.length > 0);
        badge.textContent = 'Expert in: ' + state.verified_categories.join(', ');
        renderBanners();
        ['feed', 'post', 'quiz'].forEach((v) => show($('view-' + v), state.screen === v));
        try {
          if (state.screen === 'feed') await renderFeed();
          if (state.screen === 'quiz') await renderQuiz();
        } catch (error) {
          console.error(error);
        }
      }

      async function loadCategories() {
        const categories = await api('GET', '/categories');
        const select = $('category');
        select.innerHTML = '';
        categories.forEach((c) => {
          const opt = document.createElement('option');
          opt.value = c;
          opt.textContent = c;
          select.appendChild(opt);
        });
      }

      $('take-quiz').onclick = () => setView('quiz');
      $('sign-out').onclick = () => api('POST', '/sign-out').then(refresh);
      $('ask').onclick = () => setView('post');
      document.querySelectorAll('[data-view]').forEach((btn) => { btn.onclick = () => setView(btn.dataset.view); });
      $('quiz-cancel').onclick = () => api('POST', '/quiz/cancel').then(refresh);
      $('quiz-next').onclick = async () => {
        if (submitting) return;
        submitting = true;
        $('quiz-next').disabled = true;
        try { await api('POST', '/quiz/submit'); } finally { submitting = false; }
        await refresh();
      };
      $('post-form').onsubmit = async (event) => {
        event.preventDefault();
        const title = $('title').value, body = $('body').value, category = $('category').value;
        if (!title.trim() || !body.trim()) return;
        $('post-submit').disabled = true;
        $('post-error').textContent = '';
        try {
          await api('POST', '/questions', { title, body, category });
          $('title').value = '';
          $('body').value = '';
        } catch (error) {
          $('post-error').textContent = error.message;
        } finally {
          $('post-submit').disabled = false;
        }
        await refresh();
      };

      loadCategories().catch(console.error);
      refresh();
      setInterval(refresh, 1500);
    </script>
  </body>
</html>
"""


def render_page() -> str:
    return (
        _PAGE_TEMPLATE.replace("__APP_NAME__", APP_NAME)
        .replace("__MATHJAX__", MATHJAX_SCRIPT)
        .replace("__LOADING__", LOADING_MESSAGE)
        .replace("__EMPTY_FEED__", EMPTY_FEED_MESSAGE)
    )
