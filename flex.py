from linebot.models import FlexSendMessage

PREVIEW_IMG = "https://scdn.line-apps.com/n/channel_devcenter/img/fx/01_1_cafe.png"
MORE_INFO_URL = "https://github.com/kkdai/linebot-video-gcp"


def build_video_flex_message(video_url: str, text: str) -> FlexSendMessage:
    """
    Generates a LINE Flex Message showing an uploaded video and the text
    recognised from it.

    :param video_url: Public URL of the video.
    :param text: Recognised text shown under the video.
    :return: FlexSendMessage object
    """
    bubble = {
        "type": "bubble",
        "hero": {
            "type": "video",
            "url": video_url,
            "previewUrl": PREVIEW_IMG,
            "altContent": {
                "type": "image",
                "url": PREVIEW_IMG,
                "size": "full",
                "aspectRatio": "20:13",
                "aspectMode": "cover"
            },
            "action": {
                "type": "uri",
                "label": "More information",
                "uri": MORE_INFO_URL
            },
            "aspectRatio": "20:13"
        },
        "body": {
            "type": "box",
            "layout": "vertical",
            "spacing": "md",
            "contents": [
                {
                    "type": "text",
                    "text": "翻譯後的文字如下",
                    "wrap": True,
                    "weight": "bold",
                    "gravity": "center"
                },
                {
                    "type": "box",
                    "layout": "baseline",
                    "spacing": "sm",
                    "contents": [
                        {"type": "text", "text": "內容", "color": "#AAAAAA", "size": "sm", "wrap": True, "flex": 1},
                        {"type": "text", "text": text, "color": "#666666", "size": "sm", "wrap": True, "flex": 4}
                    ]
                }
            ]
        }
    }

    return FlexSendMessage(alt_text="flex", contents=bubble)
