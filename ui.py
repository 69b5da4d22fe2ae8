"""Streamlit UI for the manuscript translator."""
import time

import requests
import streamlit as st

# API base URL
API_BASE_URL = "http://localhost:8000"

# Allowed file types
ALLOWED_TYPES = ["pdf", "docx", "png", "jpg", "jpeg", "webp", "gif", "bmp"]

ASPECT_RATIOS = ["1:1", "2:3", "3:2", "3:4", "4:3", "9:16", "16:9", "21:9"]

VIEWS = ["Manuscript Translator", "Smart Chat", "Image Generator", "Image Analyzer", "Video Analyzer"]


def check_api_health():
    """Check if API is running."""
    try:
        response = requests.get(f"{API_BASE_URL}/health", timeout=2)
        return response.status_code == 200
    except requests.RequestException:
        return False


def _error_detail(response):
    try:
        return response.json().get("detail", response.text)
    except ValueError:
        return response.text


def upload_files(files, quality):
    """Upload files to the API and return the job payload."""
    payload = [("files", (f.name, f.getvalue(), f.type)) for f in files]
    try:
        response = requests.post(
            f"{API_BASE_URL}/translate",
            files=payload,
            data={"quality": quality},
            timeout=300
        )
    except requests.RequestException as e:
        st.error(f"Upload failed: {e}")
        return None
    if response.status_code != 200:
        st.error(f"Upload rejected: {_error_detail(response)}")
        return None
    return response.json()


def get_job_status(job_id):
    """Get status of a translation job."""
    try:
        response = requests.get(f"{API_BASE_URL}/status/{job_id}", timeout=5)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        st.error(f"Failed to get status: {e}")
        return None


def fetch(path, timeout=60):
    """GET an API path and return the response body, or None on error."""
    try:
        response = requests.get(f"{API_BASE_URL}{path}", timeout=timeout)
        response.raise_for_status()
        return response
    except requests.RequestException as e:
        st.error(f"Request failed: {e}")
        return None


def translator_view():
    st.markdown("**PDF, DOCX and images → right-to-left manuscript** (up to 2 GB combined)")

    is_processing = bool(st.session_state.get("job_id")) and not st.session_state.get("job_done")

    quality = st.radio(
        "Translation quality",
        ["fast", "precise"],
        horizontal=True,
        disabled=is_processing,
    )
    uploaded_files = st.file_uploader(
        "Drop book files here",
        type=ALLOWED_TYPES,
        accept_multiple_files=True,
        disabled=is_processing,
    )

    if uploaded_files and not is_processing:
        total = sum(f.size for f in uploaded_files)
        st.info(f"📄 {len(uploaded_files)} file(s) selected ({total:,} bytes)")
        if st.button("🚀 Translate →", type="primary"):
            with st.spinner("Uploading files..."):
                result = upload_files(uploaded_files, quality)
            if result:
                st.session_state.job_id = result["job_id"]
                st.session_state.job_done = False
                st.rerun()

    job_id = st.session_state.get("job_id")
    if not job_id:
        return

    st.header("Translation Progress")
    status_placeholder = st.empty()
    progress_placeholder = st.empty()

    if is_processing and st.button("⏹ Cancel"):
        requests.post(f"{API_BASE_URL}/cancel/{job_id}", timeout=5)

    # Poll for status
    status = None
    while True:
        status = get_job_status(job_id)
        if not status:
            return
        progress_placeholder.progress(status["progress"] / 100)
        if status["is_processing"]:
            status_placeholder.info(f"🔄 {status['message']} ({status['progress']}%)")
            time.sleep(1.5)
            continue
        break

    st.session_state.job_done = True
    if status["status"] == "finished":
        status_placeholder.success(f"✅ {status['message']}")
    elif status["status"] == "cancelled":
        status_placeholder.warning(f"⏹ {status['message']}")
    else:
        status_placeholder.error(f"❌ {status['error']}")

    for warning in status["warnings"]:
        st.warning(f"{warning['source']}: {warning['message']}")

    if status["sections"]:
        col_docx, col_pdf = st.columns(2)
        docx = fetch(f"/download/{job_id}/docx")
        pdf = fetch(f"/download/{job_id}/pdf")
        if docx is not None:
            col_docx.download_button(
                "📥 Export DOCX",
                data=docx.content,
                file_name=_filename(docx, "Manuscript.docx"),
                mime=docx.headers.get("content-type"),
            )
        if pdf is not None:
            col_pdf.download_button(
                "📥 Export PDF",
                data=pdf.content,
                file_name=_filename(pdf, "Manuscript.pdf"),
                mime="application/pdf",
            )

        st.subheader(f"Unified Book Preview ({status['sections']} sections combined)")
        preview = fetch(f"/preview/{job_id}")
        if preview is not None:
            st.markdown(preview.text, unsafe_allow_html=True)

    if st.button("🔄 Translate More Files"):
        del st.session_state.job_id
        del st.session_state.job_done
        st.rerun()


def _filename(response, default):
    disposition = response.headers.get("content-disposition", "")
    if "filename=" in disposition:
        return disposition.split("filename=", 1)[1].strip('"')
    return default


def chat_view():
    history = st.session_state.setdefault("chat_history", [])

    for turn in history:
        with st.chat_message("user" if turn["role"] == "user" else "assistant"):
            st.markdown(turn["text"])
            for source in turn.get("sources", []):
                st.caption(f"🌐 [{source['title']}]({source['uri']})")

    message = st.chat_input("Ask me anything. I can search the web for up-to-date answers.")
    if not message:
        return

    payload = {
        "message": message,
        "history": [{"role": t["role"], "text": t["text"]} for t in history],
    }
    with st.spinner("Thinking..."):
        try:
            response = requests.post(f"{API_BASE_URL}/chat", json=payload, timeout=120)
        except requests.RequestException as e:
            st.error(f"Chat failed: {e}")
            return
    if response.status_code != 200:
        st.error(f"Chat failed: {_error_detail(response)}")
        return

    reply = response.json()
    history.append({"role": "user", "text": message})
    history.append({"role": "model", "text": reply["text"], "sources": reply["sources"]})
    st.rerun()


def image_generator_view():
    prompt = st.text_area("Prompt")
    aspect_ratio = st.selectbox("Aspect ratio", ASPECT_RATIOS)
    if st.button("✨ Generate", disabled=not prompt):
        with st.spinner("Generating image..."):
            response = requests.post(
                f"{API_BASE_URL}/images/generate",
                json={"prompt": prompt, "aspect_ratio": aspect_ratio},
                timeout=300,
            )
        if response.status_code != 200:
            st.error(f"Failed to generate image: {_error_detail(response)}")
            return
        st.image(response.json()["data_url"])


def analyzer_view(kind, default_prompt, file_types):
    uploaded = st.file_uploader(f"Upload {kind}", type=file_types)
    prompt = st.text_area("Prompt", value=default_prompt)
    if uploaded is None:
        return
    if kind == "image":
        st.image(uploaded)
    else:
        st.video(uploaded)
    if st.button("🔍 Analyze"):
        with st.spinner("Analyzing..."):
            response = requests.post(
                f"{API_BASE_URL}/{kind}s/analyze",
                files={"file": (uploaded.name, uploaded.getvalue(), uploaded.type)},
                data={"prompt": prompt},
                timeout=300,
            )
        if response.status_code != 200:
            st.error(f"Analysis failed: {_error_detail(response)}")
            return
        st.markdown(response.json()["analysis"])


def main():
    st.set_page_config(
        page_title="Manuscript Translator",
        page_icon="📖",
        layout="wide"
    )

    with st.sidebar:
        view = st.radio("Navigation", VIEWS)

    st.title(view)

    # Check API health
    if not check_api_health():
        st.error("⚠️ API server is not running. Please start the API server first:")
        st.code("python start_api.py", language="bash")
        st.stop()

    if view == "Manuscript Translator":
        translator_view()
    elif view == "Smart Chat":
        chat_view()
    elif view == "Image Generator":
        image_generator_view()
    elif view == "Image Analyzer":
        analyzer_view("image", "Describe this image in detail and identify key subjects.", ["png", "jpg", "jpeg", "webp"])
    else:
        analyzer_view("video", "Analyze the scene flow.", ["mp4", "mov", "webm"])


if __name__ == "__main__":
    main()
