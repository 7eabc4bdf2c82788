"""TryXpert: create, take and grade timed practice tryouts."""
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_database
from tryxpert.config import init_app
from tryxpert.countdown import TICK_SECONDS, Countdown, format_clock, format_remaining, format_time_taken
from tryxpert.draft_store import DraftStore, save_theme
from tryxpert.editor import DOWN, UP
from tryxpert.errors import DataIntegrityError, InputValidationError, PersistenceError, TimingError
from tryxpert.models import Difficulty, QuestionForm, QuestionType, TryoutForm, UserAnswer, validate_form
from tryxpert.scorer import recommendations, score_category, summarize_stored
from tryxpert.session import SessionState, TryoutSession
from tryxpert.status import STATUS_DISPLAY, ensure_can_start, resolve_status, utc_now
from tryxpert.timers import SessionTimers


@st.cache_resource
def _init():
    return init_app()


settings, store, initial_theme = _init()
drafts = DraftStore(store)

st.set_page_config(page_title="TryXpert", layout="wide")
st.sidebar.title("TryXpert")

PAGES = ("Dashboard", "New Tryout", "Detail", "Session", "Result", "Edit")
MENU = ["Dashboard", "New Tryout"]


def go(page: str, tryout_id=None):
    st.query_params.clear()
    st.query_params["page"] = page
    if tryout_id is not None:
        st.query_params["id"] = str(tryout_id)
    st.rerun()


def end_session(tryout_id):
    """Cancel both session timers, drop the session from page state and show the result."""
    timers = st.session_state.pop(f"timers_{tryout_id}", None)
    if timers is not None:
        timers.cancel()
    st.session_state.pop(f"session_{tryout_id}", None)
    go("Result", tryout_id)


def fatal(message: str):
    """Data integrity failure: only way out is back to the dashboard."""
    st.error(message)
    if st.button("Back to dashboard"):
        go("Dashboard")
    st.stop()


def show_field_errors(err: InputValidationError):
    st.error(str(err))
    for field, message in err.errors.items():
        st.caption(f"**{field}**: {message}")


def tryout_id_param() -> int:
    try:
        return int(st.query_params.get("id", ""))
    except ValueError:
        fatal("Invalid tryout ID")


# ----- Theme -----
dark = st.sidebar.toggle("Dark mode", value=st.session_state.get("theme", initial_theme) == "dark")
theme = "dark" if dark else "light"
if theme != st.session_state.get("theme", initial_theme):
    try:
        save_theme(store, theme)
    except PersistenceError as e:
        st.sidebar.warning(f"Could not save theme: {e}")
st.session_state["theme"] = theme
if dark:
    st.markdown("<style>.stApp {background-color: #0e1117; color: #fafafa;}</style>", unsafe_allow_html=True)

page = st.query_params.get("page", "Dashboard")
if page not in PAGES:
    page = "Dashboard"
choice = st.sidebar.radio("Navigate", MENU, index=MENU.index(page) if page in MENU else 0, label_visibility="collapsed")
if page in MENU and choice != page:
    go(choice)


def tryout_form(defaults=None, key="tryout_form"):
    """Render the tryout form. Returns validated TryoutForm on submit, else None."""
    d = defaults
    now = datetime.now()
    start = d.start_date.astimezone() if d else now + timedelta(days=1)
    end = d.end_date.astimezone() if d else now + timedelta(days=8)
    with st.form(key):
        title = st.text_input("Title", value=d.title if d else "")
        subject = st.text_input("Subject", value=d.subject if d else "")
        c1, c2 = st.columns(2)
        with c1:
            start_day = st.date_input("Start date", value=start.date())
            start_time = st.time_input("Start time", value=start.time().replace(second=0, microsecond=0))
        with c2:
            end_day = st.date_input("End date", value=end.date())
            end_time = st.time_input("End time", value=end.time().replace(second=0, microsecond=0))
        unlimited = st.checkbox("No time limit", value=bool(d and d.is_unlimited))
        duration = st.number_input(
            "Duration (minutes)", min_value=1, max_value=1440,
            value=d.duration if d and not d.is_unlimited else 90,
        )
        levels = [x.value for x in Difficulty]
        difficulty = st.selectbox("Difficulty", levels, index=levels.index(d.difficulty.value) if d else 1)
        syllabus = st.text_area("Syllabus (one per line)", value="\n".join(d.syllabus) if d else "")
        features = st.text_area("Features (one per line)", value="\n".join(d.features) if d else "")
        description = st.text_area("Description", value=(d.description or "") if d else "")
        if not st.form_submit_button("Save", type="primary"):
            return None
    data = {
        "title": title,
        "subject": subject,
        "start_date": datetime.combine(start_day, start_time).astimezone(),
        "end_date": datetime.combine(end_day, end_time).astimezone(),
        "duration": None if unlimited else int(duration),
        "difficulty": difficulty,
        "syllabus": [s.strip() for s in syllabus.splitlines() if s.strip()],
        "features": [s.strip() for s in features.splitlines() if s.strip()],
        "description": description or None,
    }
    try:
        return validate_form(TryoutForm, data)
    except InputValidationError as e:
        show_field_errors(e)
        return None


def question_form(key, defaults=None):
    """Render the add/edit question form. Returns validated QuestionForm on submit, else None."""
    d = defaults
    types = [t.value for t in QuestionType]
    qtype = st.selectbox(
        "Question type", types, key=f"{key}_type",
        index=types.index(d.question_type.value) if d else 0,
    )
    with st.form(key, clear_on_submit=d is None):
        text = st.text_area("Question", value=d.question_text if d else "", key=f"{key}_text")
        options, correct = [], ""
        if qtype == QuestionType.MULTIPLE_CHOICE.value:
            options = st.text_area(
                "Options (one per line)", value="\n".join(d.options) if d else "", key=f"{key}_options"
            ).splitlines()
            correct = st.text_input(
                "Correct answer (must match an option)", value=d.correct_answer if d else "", key=f"{key}_correct"
            )
        elif qtype == QuestionType.TRUE_FALSE.value:
            tf = ["true", "false"]
            current = d.correct_answer.lower() if d else ""
            correct = st.radio(
                "Correct answer", tf, horizontal=True, key=f"{key}_tf",
                index=tf.index(current) if current in tf else 0,
            )
        else:
            correct = st.text_area("Reference answer", value=d.correct_answer if d else "", key=f"{key}_reference")
        explanation = st.text_area(
            "Explanation (optional)", value=(d.explanation or "") if d else "", key=f"{key}_explanation"
        )
        points = st.number_input("Points", min_value=1, value=d.points if d else 1, key=f"{key}_points")
        if not st.form_submit_button("Save question" if d else "Add question", type="primary"):
            return None
    try:
        return validate_form(QuestionForm, {
            "question_text": text,
            "question_type": qtype,
            "options": options,
            "correct_answer": correct,
            "explanation": explanation or None,
            "points": int(points),
        })
    except InputValidationError as e:
        show_field_errors(e)
        return None


# ----- Dashboard -----
if page == "Dashboard":
    st.header("Tryouts")
    try:
        tryouts = get_database().fetch_tryouts()
    except (PersistenceError, DataIntegrityError) as e:
        st.error(f"Could not load tryouts. Check DB and .env (SUPABASE_URL, SUPABASE_KEY). {e}")
        st.stop()
    if not tryouts:
        st.info("No tryouts yet. Create one from the sidebar.")
    now = utc_now()
    for t in tryouts:
        status = resolve_status(now, t.start_date, t.end_date)
        with st.container(border=True):
            c1, c2, c3 = st.columns([3, 2, 1])
            with c1:
                st.subheader(t.title)
                st.caption(f"{t.subject} · {t.difficulty.value} · {t.total_questions or 0} questions · {t.participants} participants")
            with c2:
                st.write(STATUS_DISPLAY[status]["title"])
                st.caption(f"{t.start_date.astimezone():%d %B %Y %H:%M} – {t.end_date.astimezone():%d %B %Y %H:%M}")
            with c3:
                if st.button("Open", key=f"open_{t.id}"):
                    go("Detail", t.id)

# ----- New Tryout -----
elif page == "New Tryout":
    st.header("New Tryout")
    form = tryout_form()
    if form is not None:
        try:
            new_id = get_database().create_tryout(form)
        except PersistenceError as e:
            st.error(f"Failed to save tryout: {e}")
        else:
            go("Edit", new_id)

# ----- Detail -----
elif page == "Detail":
    tid = tryout_id_param()
    db = get_database()
    try:
        tryout = db.get_tryout(tid)
        tryout.total_questions = db.count_questions(tid)
    except DataIntegrityError as e:
        fatal(str(e))
    except PersistenceError as e:
        st.error(f"{e}. Reload the page to retry.")
        st.stop()

    st.header(tryout.title)
    st.caption(f"{tryout.subject} · {tryout.difficulty.value}")
    c1, c2, c3 = st.columns(3)
    c1.metric("Questions", tryout.total_questions)
    c2.metric("Duration", "Unlimited" if tryout.is_unlimited else f"{tryout.duration} min")
    c3.metric("Participants", tryout.participants)
    if tryout.description:
        st.write(tryout.description)
    if tryout.syllabus:
        st.subheader("Syllabus")
        st.markdown("\n".join(f"- {s}" for s in tryout.syllabus))

    @st.fragment(run_every=TICK_SECONDS)
    def countdown_card():
        state = Countdown(tryout.start_date, tryout.end_date).tick()
        display = STATUS_DISPLAY[state.status]
        with st.container(border=True):
            st.subheader(display["title"])
            st.write(display["message"])
            if state.remaining is not None:
                st.markdown(f"### {format_remaining(state.remaining)}")

    countdown_card()

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Start tryout", type="primary", use_container_width=True):
            try:
                ensure_can_start(tryout, utc_now())
            except TimingError as e:
                st.error(str(e))
            else:
                go("Session", tid)
    with c2:
        if st.button("Edit tryout", use_container_width=True, disabled=not tryout.is_editable):
            go("Edit", tid)

# ----- Session -----
elif page == "Session":
    tid = tryout_id_param()
    session_key, timers_key = f"session_{tid}", f"timers_{tid}"

    if session_key not in st.session_state:
        db = get_database()
        try:
            tryout = db.get_tryout_with_questions(tid)
            ensure_can_start(tryout, utc_now())
        except DataIntegrityError as e:
            fatal(str(e))
        except TimingError as e:
            fatal(str(e))
        except PersistenceError as e:
            st.error(f"{e}. Reload the page to retry.")
            st.stop()
        if not tryout.questions:
            fatal("This tryout is not available or has no questions yet.")
        submitter = db.submit_tryout if settings.remote_submit else None
        try:
            session = TryoutSession(
                tryout, tryout.questions, drafts, submitter=submitter, user_id=settings.user_id
            ).start()
        except PersistenceError as e:
            st.error(f"{e}. Reload the page to retry.")
            st.stop()
        st.session_state[session_key] = session
        st.session_state[timers_key] = SessionTimers(session)

    session: TryoutSession = st.session_state[session_key]
    timers: SessionTimers = st.session_state[timers_key]

    if session.is_finished:
        end_session(tid)

    st.header(session.tryout.title)
    if session.resumed:
        st.info("Resumed your saved answers.")

    @st.fragment(run_every=TICK_SECONDS)
    def timer_bar():
        timers.poll()
        if session.is_finished:
            st.rerun()
        c1, c2 = st.columns([1, 3])
        remaining = session.remaining_seconds
        c1.metric("Time left", format_clock(remaining))
        if remaining is not None and remaining < 300:
            c1.caption(":red[Less than 5 minutes left]")
        c2.progress(session.progress / 100, text=f"{session.answered_count}/{len(session.questions)} answered")

    timer_bar()

    if session.state is SessionState.EXPIRED:
        st.error(f"Time is up, but your answers could not be submitted: {session.last_error}")

    # Navigator
    st.sidebar.subheader("Questions")
    cols = st.sidebar.columns(5)
    for i, q in enumerate(session.questions):
        answer = session.answer_for(q.id)
        label = f"{i + 1}{'✓' if session.is_answered(q) else ''}{'⚑' if answer and answer.flagged else ''}"
        if cols[i % 5].button(label, key=f"nav_{q.id}", type="primary" if i == session.current_index else "secondary"):
            session.go_to_index(i)
            st.rerun()

    q = session.current_question
    answer = session.current_answer or UserAnswer.blank(q.id)
    locked = session.state is not SessionState.ACTIVE
    c1, c2 = st.columns([4, 1])
    c1.subheader(f"Question {session.current_index + 1} of {len(session.questions)}")
    if c2.button("Unflag" if answer.flagged else "Flag", disabled=locked):
        session.toggle_flag()
        st.rerun()
    st.write(q.question_text)

    if q.question_type is QuestionType.ESSAY:
        text = st.text_area(
            "Your answer", value=answer.essay_answer or "", key=f"essay_{q.id}",
            placeholder="Type your answer here...", disabled=locked,
        )
        if text != (answer.essay_answer or ""):
            session.set_essay_text(text)
    else:
        choices = q.options if q.question_type is QuestionType.MULTIPLE_CHOICE else ["true", "false"]
        current = answer.selected_option
        picked = st.radio(
            "Choose one:", choices, key=f"choice_{q.id}", disabled=locked,
            index=choices.index(current) if current in choices else None,
            format_func=lambda c: c.capitalize() if q.question_type is QuestionType.TRUE_FALSE else c,
        )
        if picked is not None and picked != current:
            session.set_selected_option(picked)

    c1, c2, c3 = st.columns([1, 1, 2])
    with c1:
        if st.button("← Previous", disabled=session.current_index == 0):
            session.go_to_previous()
            st.rerun()
    with c2:
        if st.button("Next →", disabled=session.current_index >= len(session.questions) - 1):
            session.go_to_next()
            st.rerun()
    with c3:
        if st.button("Finish & submit", type="primary", disabled=session.state is SessionState.SUBMITTING):
            try:
                result = session.submit()
            except PersistenceError as e:
                st.error(f"Could not submit your answers: {e}. Your answers are kept, please try again.")
            else:
                if result is not None:
                    end_session(tid)

# ----- Result -----
elif page == "Result":
    tid = tryout_id_param()
    try:
        tryout = get_database().get_tryout_with_questions(tid)
    except DataIntegrityError as e:
        fatal(str(e))
    except PersistenceError as e:
        st.error(f"{e}. Reload the page to retry.")
        st.stop()

    stored = drafts.load_result(tid)
    if stored is None:
        fatal("No submitted result found for this tryout.")
    summary = summarize_stored(tryout.questions, stored.answers)

    st.header(f"Results · {tryout.title}")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Score", f"{summary.earned_points} / {summary.total_points}")
    c2.metric("Percentage", f"{summary.percentage}%")
    c3.metric("Category", score_category(summary.percentage))
    if stored.time_taken_seconds is not None:
        c4.metric("Time taken", format_time_taken(stored.time_taken_seconds))
    st.caption(
        f"Correct {summary.correct_count} · Incorrect {summary.incorrect_count} · Unanswered {summary.unanswered_count}"
    )

    st.subheader("Recommendations")
    st.markdown("\n".join(f"- {tip}" for tip in recommendations(summary.percentage)))

    st.subheader("Answer review")
    by_id = {r.question_id: r for r in summary.per_question}
    for i, q in enumerate(tryout.questions, start=1):
        r = by_id.get(q.id)
        with st.expander(f"Question {i}{' ⚑' if r and r.flagged else ''}"):
            st.write(q.question_text)
            if q.question_type is QuestionType.ESSAY:
                st.write(f"**Your answer:** {(r.essay_answer if r else None) or '—'}")
                st.info("Essay answers are graded manually.")
                st.write(f"**Reference answer:** {q.correct_answer}")
            else:
                st.write(f"**Your answer:** {(r.selected_option if r else None) or '—'}")
                if r and r.is_correct:
                    st.success("Correct")
                else:
                    st.error(f"Incorrect. The correct answer is {q.correct_answer}.")
            if q.explanation:
                st.caption(q.explanation)
    if st.button("Back to dashboard"):
        go("Dashboard")

# ----- Edit -----
elif page == "Edit":
    tid = tryout_id_param()
    db = get_database()
    try:
        tryout = db.get_tryout_with_questions(tid)
    except DataIntegrityError as e:
        fatal(str(e))
    except PersistenceError as e:
        st.error(f"{e}. Reload the page to retry.")
        st.stop()

    st.header(f"Edit · {tryout.title}")
    if not tryout.is_editable:
        fatal("This tryout already has participants and cannot be modified.")

    with st.expander("Tryout details"):
        form = tryout_form(tryout, key="edit_tryout")
        if form is not None:
            try:
                db.update_tryout(tryout, form)
            except InputValidationError as e:
                show_field_errors(e)
            except PersistenceError as e:
                st.error(f"Failed to save tryout: {e}")
            else:
                st.rerun()
        if st.button("Delete tryout"):
            try:
                db.delete_tryout(tid)
            except PersistenceError as e:
                st.error(f"Failed to delete tryout: {e}")
            else:
                go("Dashboard")

    st.subheader(f"Questions ({len(tryout.questions)})")
    for q in tryout.questions:
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([6, 1, 1, 1])
            c1.write(f"**{q.order_number}.** {q.question_text}")
            c1.caption(f"{q.question_type.value} · {q.points} point(s) · answer: {q.correct_answer}")
            action = None
            if c2.button("↑", key=f"up_{q.id}"):
                action = lambda: db.move_question(tryout, q.id, UP)
            if c3.button("↓", key=f"down_{q.id}"):
                action = lambda: db.move_question(tryout, q.id, DOWN)
            if c4.button("Delete", key=f"del_{q.id}"):
                action = lambda: db.delete_question(tryout, q.id)
            with st.expander("Edit question"):
                edited = question_form(f"edit_q_{q.id}", q)
                if edited is not None:
                    action = lambda: db.update_question(tryout, q.id, edited)
            if action is not None:
                try:
                    action()
                except (InputValidationError, PersistenceError) as e:
                    st.error(str(e))
                else:
                    st.rerun()

    st.subheader("Add question")
    form = question_form("new_question")
    if form is not None:
        try:
            db.add_question(tryout, form)
        except InputValidationError as e:
            show_field_errors(e)
        except PersistenceError as e:
            st.error(f"Failed to add question: {e}")
        else:
            st.rerun()
